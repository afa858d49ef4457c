from __future__ import annotations
"""
LLM client facade over an OpenAI-compatible gateway (Vercel AI Gateway by default; base URL configurable).

The rest of the code should not care which SDK is in use. This module sends `model` + `messages`
with a JSON-schema response format and returns the decoded JSON object.
"""
from typing import Optional, List, Dict
import asyncio
import json
import logging
import random

from openai import AsyncOpenAI

from .config import SETTINGS
from .errors import OracleUnavailable

log = logging.getLogger("llm_client")

_CLIENT: AsyncOpenAI | None = None


def get_client() -> AsyncOpenAI:
    """Create the shared client on first use so importing never requires credentials."""
    global _CLIENT
    if _CLIENT is None:
        _CLIENT = AsyncOpenAI(api_key=SETTINGS.llm_api_key or None, base_url=SETTINGS.api_base or None)
    return _CLIENT


async def ask_json(
    messages: List[Dict[str, str]],
    schema: dict,
    schema_name: str,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    client: AsyncOpenAI | None = None,
) -> dict:
    """Request a JSON object matching schema. Returns {} for an empty reply.

    Raises OracleUnavailable once every retry has failed at the transport level, or when the
    reply is not a JSON object.
    """
    model = model or SETTINGS.model
    if not model:
        raise ValueError("Model is required; set SAMBUNGKATA_MODEL or pass model explicitly.")
    client = client or get_client()
    delay = 0.5
    kwargs = {}
    if temperature is not None:
        kwargs["temperature"] = temperature
    for attempt in range(SETTINGS.responses_retries + 1):
        try:
            rsp = await client.chat.completions.create(
                model=model,
                messages=messages,
                timeout=SETTINGS.responses_timeout_s,
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": schema_name, "schema": schema, "strict": True},
                },
                **kwargs,
            )
        except Exception as exc:
            if attempt >= SETTINGS.responses_retries:
                log.exception("Chat request failed after %d attempts", attempt + 1)
                raise OracleUnavailable(str(exc)) from exc
            sleep_s = delay * (2 ** attempt) * (0.8 + 0.4 * random.random())
            await asyncio.sleep(min(sleep_s, 10.0))
            continue
        return parse_json_reply(_extract_text(rsp))
    return {}


def _strip_code_fence(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("```") and raw.endswith("```"):
        inner = raw.split("\n", 1)
        if len(inner) == 2:
            return inner[1].rsplit("\n", 1)[0].strip()
    return raw


def parse_json_reply(text: str) -> dict:
    """Empty reply -> {}. A reply that is not a JSON object is a service fault (OracleUnavailable)."""
    text = _strip_code_fence(text or "")
    if not text:
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        log.warning("Reply is not valid JSON: %r", text[:200])
        raise OracleUnavailable(f"Unparseable reply: {exc}") from exc
    if not isinstance(data, dict):
        log.warning("Reply is not a JSON object: %r", text[:200])
        raise OracleUnavailable("Reply is not a JSON object")
    return data


def _extract_text(rsp) -> str:
    if not getattr(rsp, "choices", None):
        return ""
    msg = rsp.choices[0].message
    content = getattr(msg, "content", None)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for c in content:
            if isinstance(c, dict):
                if c.get("type") == "text" and isinstance(c.get("text"), str):
                    parts.append(c["text"])
                continue
            t = getattr(c, "text", None)
            if isinstance(t, str):
                parts.append(t)
        return "\n".join(parts)
    return ""
