from __future__ import annotations
"""Oracle contract (word judging + machine moves) and its LLM-backed implementation."""
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from . import llm_client
from .config import SETTINGS
from .prompting import PROPOSE_SCHEMA, VALIDATE_SCHEMA, PromptConfig, build_propose_messages, build_validate_messages
from .state import MoveRecord, Theme


@dataclass(frozen=True)
class WordVerdict:
    is_valid: bool
    fits_theme: bool
    explanation: str = ""


@dataclass(frozen=True)
class MoveProposal:
    word: str
    surrender: bool = False


# Fallbacks applied by the session when the oracle cannot answer
OFFLINE_VERDICT = WordVerdict(is_valid=True, fits_theme=True, explanation="Valid (Offline Check)")
SURRENDER = MoveProposal(word="", surrender=True)


class MoveOracle(Protocol):
    async def validate(self, word: str, theme: Theme) -> WordVerdict:
        ...

    async def propose_move(self, history: Sequence[MoveRecord], last_word: str | None, theme: Theme) -> MoveProposal:
        ...


@dataclass
class LLMOracle:
    model: Optional[str] = None
    prompt_cfg: Optional[PromptConfig] = None
    propose_temperature: Optional[float] = None
    name: Optional[str] = None

    def label(self) -> str:
        return self.name or self.model or SETTINGS.model

    async def validate(self, word: str, theme: Theme) -> WordVerdict:
        messages = build_validate_messages(word, theme, self.prompt_cfg)
        data = await llm_client.ask_json(messages, VALIDATE_SCHEMA, "word_verdict", model=self.model, temperature=0.0)
        if not data:
            return WordVerdict(is_valid=False, fits_theme=False, explanation="Gagal memvalidasi kata.")
        return WordVerdict(
            is_valid=data.get("isValid") is True,
            fits_theme=data.get("fitsTheme") is True,
            explanation=str(data.get("message") or ""),
        )

    async def propose_move(self, history: Sequence[MoveRecord], last_word: str | None, theme: Theme) -> MoveProposal:
        messages = build_propose_messages(history, last_word, theme, self.prompt_cfg)
        temperature = self.propose_temperature if self.propose_temperature is not None else SETTINGS.propose_temperature
        data = await llm_client.ask_json(messages, PROPOSE_SCHEMA, "machine_move", model=self.model, temperature=temperature)
        if not data:
            return SURRENDER
        word = str(data.get("word") or "").strip().lower()
        return MoveProposal(word=word, surrender=data.get("surrender") is True or not word)
