"""
Configuration and environment loading for Sambung Kata.

- Loads settings.yml (YAML) from repo root if present; falls back to environment variables (.env honoured).
- Exposes SETTINGS with keys used across the project (API access, model, turn timing, oracle knobs).
"""
from dataclasses import dataclass
import os
from typing import Any, Callable

import yaml
from dotenv import load_dotenv

load_dotenv()


def _repo_root() -> str:
    # this file: src/sambung_kata/config.py → repo root is two levels up
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


def _load_yaml(path: str) -> dict:
    if not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return {}
    return data if isinstance(data, dict) else {}


_cfg = _load_yaml(os.environ.get("SAMBUNGKATA_SETTINGS", os.path.join(_repo_root(), "settings.yml")))


def _get(name: str, default: Any, cast: Callable[[Any], Any] | None = None) -> Any:
    if name in _cfg:
        val = _cfg[name]
        return cast(val) if cast else val
    env = os.environ.get(name)
    if env is not None:
        return cast(env) if cast else env
    return default


def _optional_float(val: Any) -> float | None:
    if val is None or str(val).strip().lower() in ("", "none", "null", "0"):
        return None
    return float(val)


@dataclass(frozen=True)
class Settings:
    # Auth / endpoint (OpenAI-compatible wire format, Vercel AI Gateway by default)
    llm_api_key: str
    api_base: str
    model: str

    # Transport knobs
    responses_timeout_s: float
    responses_retries: int
    propose_temperature: float

    # Game timing
    turn_duration_s: int
    machine_think_delay_s: float
    oracle_timeout_s: float | None


SETTINGS = Settings(
    llm_api_key=_get("SAMBUNGKATA_LLM_API_KEY", _get("AI_GATEWAY_API_KEY", "")),
    api_base=_get("SAMBUNGKATA_LLM_BASE_URL", _get("AI_GATEWAY_BASE_URL", "https://ai-gateway.vercel.sh/v1")),
    model=_get("SAMBUNGKATA_MODEL", "google/gemini-2.5-flash"),
    responses_timeout_s=float(_get("SAMBUNGKATA_RESPONSES_TIMEOUT_S", 20.0, cast=float)),
    responses_retries=int(_get("SAMBUNGKATA_RESPONSES_RETRIES", 2, cast=int)),
    propose_temperature=float(_get("SAMBUNGKATA_PROPOSE_TEMPERATURE", 0.7, cast=float)),
    turn_duration_s=int(_get("SAMBUNGKATA_TURN_DURATION_S", 30, cast=int)),
    machine_think_delay_s=float(_get("SAMBUNGKATA_MACHINE_THINK_DELAY_S", 1.5, cast=float)),
    oracle_timeout_s=_get("SAMBUNGKATA_ORACLE_TIMEOUT_S", 60.0, cast=_optional_float),
)
