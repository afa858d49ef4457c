"""
Turn clock: the pure tick rule plus the asyncio task that drives it.

advance() only counts down while a session is active, not over, and not waiting on the oracle.
Reaching zero ends the game in favour of the opponent of the player who ran out of time.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Awaitable, Callable

from .state import SessionState, opponent_of


def advance(state: SessionState) -> SessionState:
    if not state.is_active or state.pending:
        return state
    if state.remaining_s <= 1:
        return replace(
            state,
            remaining_s=0,
            game_over=True,
            winner=opponent_of(state.mode, state.active_player),
            end_reason="timeout",
        )
    return replace(state, remaining_s=state.remaining_s - 1)


class TurnClock:
    """Calls on_tick every interval_s seconds until stopped."""

    def __init__(self, on_tick: Callable[[], Awaitable[object]], interval_s: float = 1.0):
        self.log = logging.getLogger("TurnClock")
        self.on_tick = on_tick
        self.interval_s = interval_s
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def restart(self) -> None:
        """Start a fresh interval from now; the next tick comes a full interval_s later."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self.start()

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            try:
                await self.on_tick()
            except Exception:
                self.log.exception("Clock tick failed")
