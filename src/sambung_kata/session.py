"""
GameSession: runs the reducer on an asyncio loop and executes its effects.

- Owns the current SessionState, the injected MoveOracle and the TurnClock.
- Every transition is applied synchronously on the event loop, so ticks, human submissions and machine
  moves never interleave. The reducer's pending flag keeps at most one oracle call outstanding.
- Human submissions are judged inline (submit_move awaits the verdict). Machine turns run as background
  tasks after a short thinking delay; settle() waits for them.
- Oracle failures never reach the player: validation fails open, move proposals fail as surrender.
- Records every attempt for metrics() and can dump a structured history JSON when a game ends.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import statistics
import time
from dataclasses import dataclass, field
from typing import Callable

from .clock import TurnClock
from .config import SETTINGS
from .game import (
    ClockTick,
    Effect,
    Event,
    JudgeWord,
    MachineProposed,
    Rejection,
    RequestMachineMove,
    ReturnToMenu,
    StartGame,
    SubmitWord,
    Transition,
    WordJudged,
    apply,
)
from .oracle import OFFLINE_VERDICT, SURRENDER, MoveOracle, MoveProposal, WordVerdict
from .state import Mode, PlayerId, SessionState, Theme

Listener = Callable[[SessionState, "Rejection | None"], None]


@dataclass
class SessionConfig:
    turn_duration_s: int = field(default_factory=lambda: SETTINGS.turn_duration_s)
    tick_interval_s: float = 1.0
    machine_think_delay_s: float = field(default_factory=lambda: SETTINGS.machine_think_delay_s)
    oracle_timeout_s: float | None = field(default_factory=lambda: SETTINGS.oracle_timeout_s)
    # Optional path (file or directory) for the structured history written at game end
    history_log_path: str | None = None
    run_clock: bool = True


class GameSession:
    def __init__(self, oracle: MoveOracle, cfg: SessionConfig | None = None):
        self.log = logging.getLogger("GameSession")
        self.oracle = oracle
        self.cfg = cfg or SessionConfig()
        self.state = SessionState.menu(turn_duration_s=self.cfg.turn_duration_s)
        self.last_rejection: Rejection | None = None
        self.attempts: list[dict] = []
        self.oracle_failures = 0
        self.started_at: float | None = None
        self.finished_at: float | None = None
        self.clock = TurnClock(self.tick, interval_s=self.cfg.tick_interval_s)
        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task] = set()

    # ---------------- Public surface -----------------
    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def start_game(self, mode: Mode, theme: Theme | None = None) -> SessionState:
        self.attempts = []
        self.oracle_failures = 0
        self.started_at = time.time()
        self.finished_at = None
        tr = self._dispatch(StartGame(mode=mode, theme=theme or self.state.theme))
        self.log.info("Starting game: mode=%s theme=%s epoch=%d", mode.value, self.state.theme.value, self.state.epoch)
        if self.cfg.run_clock:
            self.clock.restart()
        await self._drain(tr.effects)
        return self.state

    async def return_to_menu(self) -> SessionState:
        await self.clock.stop()
        self._dispatch(ReturnToMenu())
        return self.state

    async def submit_move(self, word: str) -> Transition:
        """Submit a word for the active human player. Returns the transition that settled the attempt."""
        author = self.state.active_player
        tr = self._dispatch(SubmitWord(word))
        if tr.rejection is not None:
            self._record_attempt(author, word, ok=False, reason=tr.rejection.reason)
            return tr
        final = await self._drain(tr.effects)
        return final or tr

    async def tick(self) -> Transition:
        return self._dispatch(ClockTick())

    async def settle(self) -> None:
        """Wait until no machine turn is in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.clock.stop()
        for task in list(self._tasks):
            task.cancel()
        await self.settle()

    # ---------------- Transition plumbing -----------------
    def _dispatch(self, event: Event) -> Transition:
        before = self.state
        tr = apply(before, event)
        self.state = tr.state
        if isinstance(event, (SubmitWord, WordJudged, StartGame, ReturnToMenu)) or tr.rejection is not None:
            self.last_rejection = tr.rejection
        if tr.committed is not None:
            self.log.debug("Committed %r by %s (streak %d)", tr.committed.word, tr.committed.author.value, self.state.streak)
        if self.state.game_over and not before.game_over:
            self._on_game_over()
        elif self.clock.running and self.state.is_active and (tr.committed is not None or (before.pending and not self.state.pending)):
            # new turn or resumed turn: count a full second from now
            self.clock.restart()
        if tr.state is not before or tr.rejection is not None:
            self._notify(tr.rejection)
        return tr

    def _notify(self, rejection: Rejection | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.state, rejection)
            except Exception:
                self.log.exception("Session listener failed")

    async def _drain(self, effects: tuple[Effect, ...]) -> Transition | None:
        """Run effects in order. Machine turns are scheduled; word judgements are awaited."""
        last: Transition | None = None
        for effect in effects:
            if isinstance(effect, RequestMachineMove):
                self._spawn(self._machine_turn(effect))
            elif isinstance(effect, JudgeWord):
                last = await self._judge(effect)
            else:
                raise TypeError(f"Unknown effect {effect!r}")
        return last

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.log.error("Machine turn task failed", exc_info=task.exception())

    async def _judge(self, effect: JudgeWord) -> Transition:
        t0 = time.time()
        verdict = await self._validate_or_fail_open(effect.word, effect.theme)
        ms = int((time.time() - t0) * 1000)
        tr = self._dispatch(WordJudged(epoch=effect.epoch, word=effect.word, author=effect.author, verdict=verdict))
        self._record_attempt(effect.author, effect.word, ok=tr.committed is not None, reason=tr.rejection.reason if tr.rejection else None, ms=ms)
        final = await self._drain(tr.effects)
        return tr if final is None else final

    async def _machine_turn(self, effect: RequestMachineMove) -> None:
        if self.cfg.machine_think_delay_s > 0:
            await asyncio.sleep(self.cfg.machine_think_delay_s)
        proposal = await self._propose_or_surrender(effect)
        before = self.state
        tr = self._dispatch(MachineProposed(epoch=effect.epoch, proposal=proposal))
        if tr.state is not before and tr.state.game_over:
            self._record_attempt(PlayerId.MACHINE, proposal.word, ok=False, reason=tr.state.end_reason)
        await self._drain(tr.effects)

    # ---------------- Oracle fallbacks -----------------
    async def _validate_or_fail_open(self, word: str, theme: Theme) -> WordVerdict:
        try:
            return await asyncio.wait_for(self.oracle.validate(word, theme), timeout=self.cfg.oracle_timeout_s)
        except asyncio.TimeoutError:
            self.oracle_failures += 1
            self.log.warning("Word validation timed out for %r; accepting it", word)
        except Exception:
            self.oracle_failures += 1
            self.log.exception("Word validation failed for %r; accepting it", word)
        return OFFLINE_VERDICT

    async def _propose_or_surrender(self, effect: RequestMachineMove) -> MoveProposal:
        try:
            return await asyncio.wait_for(
                self.oracle.propose_move(effect.history, effect.last_word, effect.theme),
                timeout=self.cfg.oracle_timeout_s,
            )
        except asyncio.TimeoutError:
            self.oracle_failures += 1
            self.log.warning("Machine move timed out; machine surrenders")
        except Exception:
            self.oracle_failures += 1
            self.log.exception("Machine move failed; machine surrenders")
        return SURRENDER

    # ---------------- Bookkeeping -----------------
    def _record_attempt(self, actor: PlayerId, word: str, ok: bool, reason: str | None = None, ms: int | None = None) -> None:
        self.attempts.append({"actor": actor.value, "word": word, "ok": ok, "reason": reason, "ms": ms, "epoch": self.state.epoch})

    def _on_game_over(self) -> None:
        self.finished_at = time.time()
        state = self.state
        self.log.info(
            "Game finished winner=%s reason=%s streak=%d",
            state.winner.value if state.winner else None,
            state.end_reason,
            state.streak,
        )
        if self.cfg.history_log_path:
            self.dump_history_json()

    # ---------------- Export / Metrics -----------------
    def export_history(self) -> dict:
        """Structured history of the current session suitable for replay or inspection."""
        state = self.state
        return {
            "mode": state.mode.value,
            "theme": state.theme.value,
            "result": {
                "game_over": state.game_over,
                "winner": state.winner.value if state.winner else None,
                "end_reason": state.end_reason,
            },
            "streak": state.streak,
            "moves": [rec.to_dict() for rec in state.history],
            "attempts": list(self.attempts),
        }

    def _history_path(self) -> str | None:
        p = self.cfg.history_log_path
        if not p:
            return None
        if os.path.isdir(p) or os.path.splitext(p)[1] == "":
            ts = time.strftime("%Y%m%d-%H%M%S", time.localtime(self.started_at or time.time()))
            return os.path.join(p, f"hist_{ts}_{self.state.mode.value}_e{self.state.epoch}.json")
        return p

    def dump_history_json(self) -> str | None:
        path = self._history_path()
        if not path:
            return None
        try:
            dir_path = os.path.dirname(path)
            if dir_path:
                os.makedirs(dir_path, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(self.export_history(), f, ensure_ascii=False, indent=2)
            self.log.info("Wrote structured history to %s", path)
        except OSError:
            self.log.exception("Failed writing structured history")
            return None
        return path

    def metrics(self) -> dict:
        state = self.state
        judged = [a for a in self.attempts if a.get("ms") is not None]
        latencies = [a["ms"] for a in judged]
        rejected: dict[str, int] = {}
        for a in self.attempts:
            if not a["ok"] and a.get("reason"):
                rejected[a["reason"]] = rejected.get(a["reason"], 0) + 1
        words_by_player: dict[str, int] = {}
        for rec in state.history:
            words_by_player[rec.author.value] = words_by_player.get(rec.author.value, 0) + 1
        end = self.finished_at or time.time()
        return {
            "mode": state.mode.value,
            "theme": state.theme.value,
            "streak": state.streak,
            "words_by_player": words_by_player,
            "attempts_total": len(self.attempts),
            "rejections": rejected,
            "oracle_failures": self.oracle_failures,
            "validation_ms_avg": statistics.mean(latencies) if latencies else 0,
            "winner": state.winner.value if state.winner else None,
            "end_reason": state.end_reason,
            "duration_s": round(end - self.started_at, 2) if self.started_at else 0.0,
        }
