"""
Prompt builders and config for oracle requests using modular templates.

Callers supply system instructions and template strings with placeholders
that are substituted per request. Replies are constrained by the JSON schemas below.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence

from .state import MoveRecord, Theme

DEFAULT_SYSTEM = "Kamu adalah juri dan pemain permainan sambung kata Bahasa Indonesia. Selalu jawab dengan JSON."

DEFAULT_VALIDATE_TEMPLATE = """Validasi kata "{WORD}" dalam Bahasa Indonesia.
1. Apakah kata ini ada di KBBI (Kamus Besar Bahasa Indonesia) dan baku?
2. {THEME_CONTEXT}

Jawab dengan JSON."""

DEFAULT_PROPOSE_TEMPLATE = """Kita bermain sambung kata. Kata terakhir: "{LAST_WORD}".
Cari satu kata Bahasa Indonesia yang dimulai huruf "{TARGET_LETTER}".
Tema: {THEME_INSTRUCTION}.
Kata yang SUDAH digunakan: [{USED_WORDS}].
JANGAN gunakan kata yang sudah digunakan.
Jika menyerah, set surrender true. Format JSON."""

DEFAULT_OPENING_TEMPLATE = """Mulai permainan sambung kata Bahasa Indonesia. Tema: {THEME_INSTRUCTION}. Jawab JSON."""

VALIDATE_SCHEMA = {
    "type": "object",
    "properties": {
        "isValid": {"type": "boolean", "description": "Benar jika kata tersebut valid dan baku dalam Bahasa Indonesia."},
        "fitsTheme": {"type": "boolean", "description": "Benar jika kata tersebut sesuai dengan tema yang diminta. Jika tema Bebas, set true."},
        "message": {"type": "string", "description": "Penjelasan singkat."},
    },
    "required": ["isValid", "fitsTheme", "message"],
    "additionalProperties": False,
}

PROPOSE_SCHEMA = {
    "type": "object",
    "properties": {
        "word": {"type": "string", "description": "Kata balasan kamu."},
        "surrender": {"type": "boolean", "description": "Set true jika tidak menemukan kata."},
    },
    "required": ["word", "surrender"],
    "additionalProperties": False,
}


@dataclass
class PromptConfig:
    """Configuration for shaping oracle prompts using custom templates."""

    system_instructions: str = DEFAULT_SYSTEM
    validate_template: str = DEFAULT_VALIDATE_TEMPLATE
    propose_template: str = DEFAULT_PROPOSE_TEMPLATE
    opening_template: str = DEFAULT_OPENING_TEMPLATE


def render_custom_prompt(template: str, values: Dict[str, str]) -> str:
    """Replace known placeholders in the template. Unknown tokens are left intact."""
    rendered = template or ""
    for key, val in values.items():
        rendered = rendered.replace(f"{{{key}}}", val)
    return rendered


def theme_context(theme: Theme) -> str:
    if theme == Theme.ANY:
        return "Tema adalah 'BEBAS', jadi semua kata benda/kerja/sifat valid asalkan baku."
    return f"Tema adalah '{theme.value}'. Kata HARUS berhubungan erat dengan kategori ini."


def theme_instruction(theme: Theme) -> str:
    if theme == Theme.ANY:
        return "Bebas (kata apa saja yang valid)"
    return f"Sesuai tema '{theme.value}'"


def build_validate_messages(word: str, theme: Theme, cfg: PromptConfig | None = None) -> list[dict]:
    cfg = cfg or PromptConfig()
    user = render_custom_prompt(cfg.validate_template, {"WORD": word, "THEME_CONTEXT": theme_context(theme)})
    return [
        {"role": "system", "content": cfg.system_instructions},
        {"role": "user", "content": user},
    ]


def build_propose_messages(history: Sequence[MoveRecord], last_word: str | None, theme: Theme, cfg: PromptConfig | None = None) -> list[dict]:
    """Opening prompt when no word has been played yet, otherwise the continuation prompt."""
    cfg = cfg or PromptConfig()
    values = {
        "LAST_WORD": last_word or "",
        "TARGET_LETTER": last_word[-1].lower() if last_word else "",
        "THEME_INSTRUCTION": theme_instruction(theme),
        "USED_WORDS": ", ".join(rec.word for rec in history),
    }
    template = cfg.propose_template if last_word else cfg.opening_template
    return [
        {"role": "system", "content": cfg.system_instructions},
        {"role": "user", "content": render_custom_prompt(template, values)},
    ]
