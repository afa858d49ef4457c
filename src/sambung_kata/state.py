"""
Session data model: themes, modes, players, move records and the immutable SessionState.

SessionState is never mutated in place; transitions produce a new value via dataclasses.replace.
streak and last_word are derived from history so they cannot drift from it.
"""
from __future__ import annotations

import enum
import time
import uuid
from dataclasses import dataclass, field


class Theme(str, enum.Enum):
    ANY = "Bebas"
    ANIMALS = "Hewan"
    FRUITS_VEG = "Buah & Sayur"
    PLACES = "Negara & Kota"
    OBJECTS = "Benda Mati"
    JOBS = "Pekerjaan/Profesi"

    @classmethod
    def parse(cls, value: "Theme | str | None") -> "Theme":
        """Accept a member, its name (any case) or its label. None means ANY."""
        if value is None:
            return cls.ANY
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for theme in cls:
            if text.upper() == theme.name or text.lower() == theme.value.lower():
                return theme
        raise ValueError(f"Unknown theme '{value}'. Choose one of: {', '.join(t.name.lower() for t in cls)}")


class PlayerId(str, enum.Enum):
    HUMAN_1 = "human_1"
    HUMAN_2 = "human_2"
    MACHINE = "machine"


class Mode(str, enum.Enum):
    MENU = "menu"
    LOCAL_TWO_PLAYER = "local_two_player"
    VERSUS_MACHINE = "versus_machine"

    @classmethod
    def parse(cls, value: "Mode | str") -> "Mode":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        aliases = {"pvp": cls.LOCAL_TWO_PLAYER, "local": cls.LOCAL_TWO_PLAYER, "pve": cls.VERSUS_MACHINE, "ai": cls.VERSUS_MACHINE}
        if key in aliases:
            return aliases[key]
        for mode in cls:
            if key in (mode.value, mode.name.lower()):
                return mode
        raise ValueError(f"Unknown mode '{value}'")


_TURN_ORDER: dict[Mode, tuple[PlayerId, PlayerId]] = {
    Mode.LOCAL_TWO_PLAYER: (PlayerId.HUMAN_1, PlayerId.HUMAN_2),
    Mode.VERSUS_MACHINE: (PlayerId.HUMAN_1, PlayerId.MACHINE),
}


def participants(mode: Mode) -> tuple[PlayerId, PlayerId]:
    try:
        return _TURN_ORDER[mode]
    except KeyError:
        raise ValueError(f"Mode {mode.value} has no players") from None


def first_player(mode: Mode) -> PlayerId:
    return participants(mode)[0]


def opponent_of(mode: Mode, player: PlayerId) -> PlayerId:
    """The other participant. With two players per mode this is also the next player to move."""
    a, b = participants(mode)
    if player == a:
        return b
    if player == b:
        return a
    raise ValueError(f"{player.value} does not play in mode {mode.value}")


next_player = opponent_of


@dataclass(frozen=True)
class MoveRecord:
    id: str
    word: str
    author: PlayerId
    timestamp: float

    @classmethod
    def create(cls, seq: int, word: str, author: PlayerId, now: float | None = None) -> "MoveRecord":
        # zero-padded sequence keeps ids sortable in creation order
        return cls(id=f"w{seq:05d}_{uuid.uuid4().hex[:6]}", word=word, author=author, timestamp=now if now is not None else time.time())

    def to_dict(self) -> dict:
        return {"id": self.id, "word": self.word, "author": self.author.value, "timestamp": self.timestamp}


@dataclass(frozen=True)
class SessionState:
    mode: Mode = Mode.MENU
    theme: Theme = Theme.ANY
    active_player: PlayerId = PlayerId.HUMAN_1
    history: tuple[MoveRecord, ...] = field(default_factory=tuple)
    game_over: bool = False
    winner: PlayerId | None = None
    remaining_s: int = 30
    turn_duration_s: int = 30
    pending: bool = False
    epoch: int = 0
    end_reason: str | None = None

    @classmethod
    def menu(cls, theme: Theme = Theme.ANY, turn_duration_s: int = 30, epoch: int = 0) -> "SessionState":
        return cls(theme=theme, remaining_s=turn_duration_s, turn_duration_s=turn_duration_s, epoch=epoch)

    @property
    def streak(self) -> int:
        return len(self.history)

    @property
    def last_word(self) -> str | None:
        return self.history[-1].word if self.history else None

    @property
    def used_words(self) -> frozenset[str]:
        return frozenset(rec.word.lower() for rec in self.history)

    @property
    def required_letter(self) -> str | None:
        last = self.last_word
        return last[-1].lower() if last else None

    @property
    def is_active(self) -> bool:
        return self.mode != Mode.MENU and not self.game_over

    @property
    def phase(self) -> str:
        if self.mode == Mode.MENU:
            return "menu"
        return "game_over" if self.game_over else "active"

    def to_dict(self) -> dict:
        """Read-only projection handed to presentation surfaces."""
        return {
            "phase": self.phase,
            "mode": self.mode.value,
            "theme": self.theme.value,
            "active_player": self.active_player.value,
            "history": [rec.to_dict() for rec in self.history],
            "streak": self.streak,
            "last_word": self.last_word,
            "required_letter": self.required_letter,
            "game_over": self.game_over,
            "winner": self.winner.value if self.winner else None,
            "end_reason": self.end_reason,
            "remaining_s": self.remaining_s,
            "pending": self.pending,
        }
