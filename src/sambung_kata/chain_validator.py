"""
Local word-chain checks run before the oracle is consulted.

Reasons, in evaluation order:
- "empty": nothing left after trimming.
- "multi_token": the candidate contains internal whitespace.
- "letter_mismatch": the first letter differs from the last letter of the prior word ("expected" holds it).
- "duplicate": the word was already played this session (case-insensitive).
"""
from __future__ import annotations

import re
from typing import Iterable, Literal, TypedDict

WHITESPACE_RE = re.compile(r"\s")

ChainReason = Literal["empty", "multi_token", "letter_mismatch", "duplicate"]


class ChainCheck(TypedDict, total=False):
    ok: bool
    word: str
    reason: ChainReason
    expected: str


def normalize_word(raw: str | None) -> str:
    return (raw or "").strip().lower()


def check_chain(candidate: str | None, prior_word: str | None, used_words: Iterable[str]) -> ChainCheck:
    """Validate candidate against the chain rule and the used-word set. Side-effect free."""
    word = normalize_word(candidate)
    if not word:
        return {"ok": False, "word": word, "reason": "empty"}
    if WHITESPACE_RE.search(word):
        return {"ok": False, "word": word, "reason": "multi_token"}
    if prior_word:
        expected = prior_word.strip()[-1:].lower()
        if word[0] != expected:
            return {"ok": False, "word": word, "reason": "letter_mismatch", "expected": expected}
    if word in {w.lower() for w in used_words}:
        return {"ok": False, "word": word, "reason": "duplicate"}
    return {"ok": True, "word": word}


__all__ = ["check_chain", "normalize_word", "ChainCheck", "ChainReason"]
