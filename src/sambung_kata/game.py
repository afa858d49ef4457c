"""
Game state machine as a single reducer.

- apply(state, event) returns a Transition: the new state, effects to run (oracle calls), an optional
  Rejection to surface, and the MoveRecord committed by this step (if any).
- The reducer never performs I/O. GameSession executes the effects and feeds their results back in
  as WordJudged / MachineProposed events tagged with the epoch they were issued under.
- Results carrying an old epoch (session restarted or left) or arriving when nothing is pending are dropped.

Phases: menu -> active (StartGame) -> game_over (timeout, surrender, machine_invalid_word);
game_over -> active (StartGame rematch) or menu (ReturnToMenu).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Union

from .chain_validator import check_chain
from .clock import advance
from .oracle import MoveProposal, WordVerdict
from .state import Mode, MoveRecord, PlayerId, SessionState, Theme, first_player, next_player, opponent_of

log = logging.getLogger("game")


# ---------------- Events -----------------
@dataclass(frozen=True)
class StartGame:
    mode: Mode
    theme: Theme = Theme.ANY


@dataclass(frozen=True)
class ReturnToMenu:
    pass


@dataclass(frozen=True)
class SubmitWord:
    """A human submission on behalf of whoever is to move."""
    word: str


@dataclass(frozen=True)
class WordJudged:
    epoch: int
    word: str
    author: PlayerId
    verdict: WordVerdict


@dataclass(frozen=True)
class MachineProposed:
    epoch: int
    proposal: MoveProposal


@dataclass(frozen=True)
class ClockTick:
    pass


Event = Union[StartGame, ReturnToMenu, SubmitWord, WordJudged, MachineProposed, ClockTick]


# ---------------- Effects -----------------
@dataclass(frozen=True)
class JudgeWord:
    epoch: int
    word: str
    author: PlayerId
    theme: Theme


@dataclass(frozen=True)
class RequestMachineMove:
    epoch: int
    history: tuple[MoveRecord, ...]
    last_word: str | None
    theme: Theme


Effect = Union[JudgeWord, RequestMachineMove]


# ---------------- Outcomes -----------------
MESSAGES = {
    "empty": "Kata kosong",
    "multi_token": "Hanya satu kata!",
    "letter_mismatch": "Kata harus dimulai dengan huruf '{expected}'!",
    "duplicate": "Kata ini sudah digunakan!",
    "invalid_word": "Kata tidak valid menurut KBBI.",
    "theme_mismatch": "Kata tidak sesuai tema '{theme}'!",
    "no_active_game": "Permainan belum dimulai.",
    "game_over": "Permainan sudah berakhir.",
    "not_your_turn": "Bukan giliranmu!",
    "busy": "Sedang memvalidasi kata, tunggu sebentar.",
}

LOCAL_REASONS = frozenset({"empty", "multi_token", "letter_mismatch", "duplicate"})
ORACLE_REASONS = frozenset({"invalid_word", "theme_mismatch"})


@dataclass(frozen=True)
class Rejection:
    reason: str
    message: str
    expected: str | None = None

    @classmethod
    def of(cls, reason: str, expected: str | None = None, theme: Theme | None = None, detail: str | None = None) -> "Rejection":
        if detail:
            message = detail
        else:
            message = MESSAGES[reason].format(expected=(expected or "").upper(), theme=theme.value if theme else "")
        return cls(reason=reason, message=message, expected=expected)

    def to_dict(self) -> dict:
        return {"reason": self.reason, "message": self.message, "expected": self.expected}


@dataclass(frozen=True)
class Transition:
    state: SessionState
    effects: tuple[Effect, ...] = field(default_factory=tuple)
    rejection: Rejection | None = None
    committed: MoveRecord | None = None


# ---------------- Reducer -----------------
def apply(state: SessionState, event: Event, now: float | None = None) -> Transition:
    if isinstance(event, StartGame):
        return _start(state, event)
    if isinstance(event, ReturnToMenu):
        return Transition(SessionState.menu(theme=state.theme, turn_duration_s=state.turn_duration_s, epoch=state.epoch + 1))
    if isinstance(event, SubmitWord):
        return _submit(state, event)
    if isinstance(event, WordJudged):
        return _judged(state, event, now)
    if isinstance(event, MachineProposed):
        return _machine_proposed(state, event)
    if isinstance(event, ClockTick):
        return Transition(advance(state))
    raise TypeError(f"Unknown event {event!r}")


def _start(state: SessionState, event: StartGame) -> Transition:
    if event.mode == Mode.MENU:
        raise ValueError("Cannot start a game in menu mode")
    new = SessionState(
        mode=event.mode,
        theme=event.theme,
        active_player=first_player(event.mode),
        remaining_s=state.turn_duration_s,
        turn_duration_s=state.turn_duration_s,
        epoch=state.epoch + 1,
    )
    return _with_machine_followup(Transition(new))


def _submit(state: SessionState, event: SubmitWord) -> Transition:
    if state.mode == Mode.MENU:
        return Transition(state, rejection=Rejection.of("no_active_game"))
    if state.game_over:
        return Transition(state, rejection=Rejection.of("game_over"))
    if state.active_player == PlayerId.MACHINE:
        return Transition(state, rejection=Rejection.of("not_your_turn"))
    if state.pending:
        return Transition(state, rejection=Rejection.of("busy"))
    check = check_chain(event.word, state.last_word, state.used_words)
    if not check["ok"]:
        return Transition(state, rejection=Rejection.of(check["reason"], expected=check.get("expected")))
    effect = JudgeWord(epoch=state.epoch, word=check["word"], author=state.active_player, theme=state.theme)
    return Transition(replace(state, pending=True), effects=(effect,))


def _is_stale(state: SessionState, epoch: int) -> bool:
    return epoch != state.epoch or not state.pending or not state.is_active


def _judged(state: SessionState, event: WordJudged, now: float | None) -> Transition:
    if _is_stale(state, event.epoch) or event.author != state.active_player:
        log.debug("Dropping stale verdict for %r (epoch %d, current %d)", event.word, event.epoch, state.epoch)
        return Transition(state)
    verdict = event.verdict
    rejection = None
    if not verdict.is_valid:
        rejection = Rejection.of("invalid_word", detail=verdict.explanation or None)
    elif not verdict.fits_theme:
        rejection = Rejection.of("theme_mismatch", theme=state.theme)
    if rejection is not None:
        if event.author == PlayerId.MACHINE:
            return Transition(_end(state, opponent_of(state.mode, PlayerId.MACHINE), "machine_invalid_word"), rejection=rejection)
        return Transition(replace(state, pending=False), rejection=rejection)

    record = MoveRecord.create(len(state.history) + 1, event.word, event.author, now)
    new = replace(
        state,
        history=state.history + (record,),
        active_player=next_player(state.mode, event.author),
        remaining_s=state.turn_duration_s,
        pending=False,
    )
    return _with_machine_followup(Transition(new, committed=record))


def _machine_proposed(state: SessionState, event: MachineProposed) -> Transition:
    if _is_stale(state, event.epoch) or state.active_player != PlayerId.MACHINE:
        log.debug("Dropping stale machine proposal (epoch %d, current %d)", event.epoch, state.epoch)
        return Transition(state)
    human = opponent_of(state.mode, PlayerId.MACHINE)
    proposal = event.proposal
    if proposal.surrender or not proposal.word.strip():
        return Transition(_end(state, human, "surrender"))
    check = check_chain(proposal.word, state.last_word, state.used_words)
    if not check["ok"]:
        log.warning("Machine proposed %r which fails the chain check (%s); treating as surrender", proposal.word, check["reason"])
        return Transition(_end(state, human, "machine_invalid_word"))
    effect = JudgeWord(epoch=state.epoch, word=check["word"], author=PlayerId.MACHINE, theme=state.theme)
    return Transition(state, effects=(effect,))


def _with_machine_followup(tr: Transition) -> Transition:
    """Queue the machine's move whenever it becomes the machine's turn in a live session."""
    state = tr.state
    if not state.is_active or state.active_player != PlayerId.MACHINE:
        return tr
    effect = RequestMachineMove(epoch=state.epoch, history=state.history, last_word=state.last_word, theme=state.theme)
    return replace(tr, state=replace(state, pending=True), effects=tr.effects + (effect,))


def _end(state: SessionState, winner: PlayerId, reason: str) -> SessionState:
    return replace(state, game_over=True, winner=winner, pending=False, end_reason=reason)
