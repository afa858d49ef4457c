"""Deterministic oracle doubles shared by the tests."""
import asyncio

from sambung_kata.oracle import MoveProposal, WordVerdict
from sambung_kata.session import SessionConfig

ACCEPT = WordVerdict(is_valid=True, fits_theme=True, explanation="ok")


def quiet_config(**overrides) -> SessionConfig:
    """No thinking delay and no background clock, so tests drive time explicitly."""
    values = dict(turn_duration_s=30, tick_interval_s=1.0, machine_think_delay_s=0, oracle_timeout_s=1.0, run_clock=False)
    values.update(overrides)
    return SessionConfig(**values)


class ScriptedOracle:
    """Answers validate() from a word -> verdict map and propose_move() from a queue.

    Exceptions placed in either script are raised instead of returned.
    """

    def __init__(self, verdicts=None, proposals=None, default_verdict=ACCEPT):
        self.verdicts = dict(verdicts or {})
        self.proposals = list(proposals or [])
        self.default_verdict = default_verdict
        self.validate_calls = []
        self.propose_calls = []

    async def validate(self, word, theme):
        self.validate_calls.append((word, theme))
        verdict = self.verdicts.get(word, self.default_verdict)
        if isinstance(verdict, BaseException):
            raise verdict
        return verdict

    async def propose_move(self, history, last_word, theme):
        self.propose_calls.append((tuple(history), last_word, theme))
        if not self.proposals:
            return MoveProposal(word="", surrender=True)
        proposal = self.proposals.pop(0)
        if isinstance(proposal, BaseException):
            raise proposal
        return proposal


class GatedOracle(ScriptedOracle):
    """validate() blocks until gate is set, to hold a session in the pending state."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.gate = asyncio.Event()

    async def validate(self, word, theme):
        await self.gate.wait()
        return await super().validate(word, theme)


class SlowOracle(ScriptedOracle):
    def __init__(self, delay_s: float, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.delay_s = delay_s

    async def validate(self, word, theme):
        await asyncio.sleep(self.delay_s)
        return await super().validate(word, theme)

    async def propose_move(self, history, last_word, theme):
        await asyncio.sleep(self.delay_s)
        return await super().propose_move(history, last_word, theme)
