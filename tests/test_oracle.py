import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from fakes import quiet_config
from sambung_kata.oracle import SURRENDER, LLMOracle, MoveProposal, WordVerdict
from sambung_kata.prompting import PromptConfig, build_propose_messages, build_validate_messages, render_custom_prompt
from sambung_kata.session import GameSession
from sambung_kata.state import Mode, MoveRecord, PlayerId, Theme


class PromptTests(unittest.TestCase):
    def test_validate_prompt_mentions_word_and_theme(self):
        msgs = build_validate_messages("kucing", Theme.ANIMALS)
        self.assertEqual([m["role"] for m in msgs], ["system", "user"])
        self.assertIn('"kucing"', msgs[1]["content"])
        self.assertIn("Hewan", msgs[1]["content"])
        self.assertIn("BEBAS", build_validate_messages("kucing", Theme.ANY)[1]["content"])

    def test_propose_prompt_lists_used_words_and_target_letter(self):
        history = [
            MoveRecord.create(1, "kucing", PlayerId.HUMAN_1, 1.0),
            MoveRecord.create(2, "gajah", PlayerId.MACHINE, 2.0),
        ]
        user = build_propose_messages(history, "gajah", Theme.ANY)[1]["content"]
        self.assertIn('"gajah"', user)
        self.assertIn('huruf "h"', user)
        self.assertIn("[kucing, gajah]", user)

    def test_opening_prompt_when_chain_is_empty(self):
        user = build_propose_messages([], None, Theme.PLACES)[1]["content"]
        self.assertIn("Mulai permainan", user)
        self.assertIn("Negara & Kota", user)

    def test_custom_templates(self):
        cfg = PromptConfig(system_instructions="SYS", validate_template="W={WORD} {UNKNOWN}")
        msgs = build_validate_messages("kuda", Theme.ANY, cfg)
        self.assertEqual(msgs[0]["content"], "SYS")
        self.assertEqual(msgs[1]["content"], "W=kuda {UNKNOWN}")
        self.assertEqual(render_custom_prompt("", {"WORD": "x"}), "")


class LLMOracleTests(unittest.IsolatedAsyncioTestCase):
    async def test_validate_maps_reply_fields(self):
        reply = {"isValid": True, "fitsTheme": False, "message": "Bukan hewan."}
        with patch("sambung_kata.oracle.llm_client.ask_json", new=AsyncMock(return_value=reply)) as ask:
            verdict = await LLMOracle(model="m").validate("meja", Theme.ANIMALS)
        self.assertEqual(verdict, WordVerdict(True, False, "Bukan hewan."))
        args, kwargs = ask.call_args
        self.assertEqual(args[2], "word_verdict")
        self.assertEqual(kwargs["model"], "m")
        self.assertEqual(kwargs["temperature"], 0.0)

    async def test_empty_validation_reply_is_a_rejection(self):
        with patch("sambung_kata.oracle.llm_client.ask_json", new=AsyncMock(return_value={})):
            verdict = await LLMOracle().validate("kucing", Theme.ANY)
        self.assertFalse(verdict.is_valid)
        self.assertTrue(verdict.explanation)

    async def test_propose_normalizes_word(self):
        reply = {"word": "  Gajah ", "surrender": False}
        with patch("sambung_kata.oracle.llm_client.ask_json", new=AsyncMock(return_value=reply)) as ask:
            proposal = await LLMOracle(propose_temperature=0.3).propose_move([], "kucing", Theme.ANY)
        self.assertEqual(proposal, MoveProposal("gajah", surrender=False))
        self.assertEqual(ask.call_args.args[2], "machine_move")
        self.assertEqual(ask.call_args.kwargs["temperature"], 0.3)

    async def test_blank_word_or_flag_means_surrender(self):
        for reply in ({"word": "", "surrender": False}, {"word": "gajah", "surrender": True}, {}):
            with self.subTest(reply=reply):
                with patch("sambung_kata.oracle.llm_client.ask_json", new=AsyncMock(return_value=reply)):
                    proposal = await LLMOracle().propose_move([], "kucing", Theme.ANY)
                self.assertTrue(proposal.surrender)
        self.assertEqual(SURRENDER, MoveProposal("", True))

    async def test_only_real_booleans_count(self):
        reply = {"isValid": "false", "fitsTheme": "true", "message": ""}
        with patch("sambung_kata.oracle.llm_client.ask_json", new=AsyncMock(return_value=reply)):
            verdict = await LLMOracle().validate("kucingg", Theme.ANY)
        self.assertFalse(verdict.is_valid)
        self.assertFalse(verdict.fits_theme)
        with patch("sambung_kata.oracle.llm_client.ask_json", new=AsyncMock(return_value={"word": "gajah", "surrender": "false"})):
            proposal = await LLMOracle().propose_move([], "kucing", Theme.ANY)
        self.assertEqual(proposal, MoveProposal("gajah", surrender=False))

    def test_label(self):
        self.assertEqual(LLMOracle(model="m", name="bot").label(), "bot")
        self.assertEqual(LLMOracle(model="m").label(), "m")


class GarbledReplyTests(unittest.IsolatedAsyncioTestCase):
    """A reply that is not JSON is a service fault, so the session's fallbacks apply."""

    def client_replying(self, content):
        rsp = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])
        create = AsyncMock(return_value=rsp)
        return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

    async def test_garbled_verdict_fails_open(self):
        with patch("sambung_kata.llm_client.get_client", return_value=self.client_replying("{not json")):
            session = GameSession(LLMOracle(model="m"), quiet_config())
            await session.start_game(Mode.LOCAL_TWO_PLAYER)
            with self.assertLogs("GameSession", level="ERROR"):
                tr = await session.submit_move("kucing")
            await session.close()
        self.assertIsNone(tr.rejection)
        self.assertEqual(tr.committed.word, "kucing")
        self.assertEqual(session.oracle_failures, 1)

    async def test_empty_verdict_is_still_a_rejection(self):
        with patch("sambung_kata.llm_client.get_client", return_value=self.client_replying("")):
            session = GameSession(LLMOracle(model="m"), quiet_config())
            await session.start_game(Mode.LOCAL_TWO_PLAYER)
            tr = await session.submit_move("kucing")
            await session.close()
        self.assertEqual(tr.rejection.reason, "invalid_word")
        self.assertEqual(tr.rejection.message, "Gagal memvalidasi kata.")

    async def test_garbled_proposal_means_surrender(self):
        verdict = '{"isValid": true, "fitsTheme": true, "message": "ok"}'
        client = self.client_replying(verdict)
        client.chat.completions.create.side_effect = [
            SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=verdict))]),
            SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="gajah!"))]),
        ]
        with patch("sambung_kata.llm_client.get_client", return_value=client):
            session = GameSession(LLMOracle(model="m"), quiet_config())
            await session.start_game(Mode.VERSUS_MACHINE)
            with self.assertLogs("GameSession", level="ERROR"):
                await session.submit_move("kucing")
                await session.settle()
            await session.close()
        self.assertEqual(session.state.end_reason, "surrender")
        self.assertEqual(session.state.winner, PlayerId.HUMAN_1)


if __name__ == "__main__":
    unittest.main()
