import unittest
from dataclasses import replace
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from sambung_kata import llm_client
from sambung_kata.errors import OracleUnavailable


def reply(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def fake_client(*results):
    create = AsyncMock(side_effect=list(results))
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create))), create


class AskJsonTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        settings = replace(llm_client.SETTINGS, responses_retries=2, model="test-model")
        self.settings_patch = patch("sambung_kata.llm_client.SETTINGS", settings)
        self.sleep_patch = patch("sambung_kata.llm_client.asyncio.sleep", new=AsyncMock())
        self.settings_patch.start()
        self.sleep = self.sleep_patch.start()

    async def asyncTearDown(self):
        self.sleep_patch.stop()
        self.settings_patch.stop()

    async def test_returns_decoded_object_and_sends_schema(self):
        client, create = fake_client(reply('{"isValid": true, "fitsTheme": true, "message": "ok"}'))
        data = await llm_client.ask_json([{"role": "user", "content": "x"}], {"type": "object"}, "word_verdict", client=client, temperature=0.0)
        self.assertEqual(data, {"isValid": True, "fitsTheme": True, "message": "ok"})
        kwargs = create.call_args.kwargs
        self.assertEqual(kwargs["model"], "test-model")
        self.assertEqual(kwargs["temperature"], 0.0)
        self.assertEqual(kwargs["response_format"]["json_schema"]["name"], "word_verdict")

    async def test_retries_transport_errors(self):
        client, create = fake_client(RuntimeError("502"), reply('{"word": "gajah", "surrender": false}'))
        data = await llm_client.ask_json([], {}, "machine_move", client=client)
        self.assertEqual(data["word"], "gajah")
        self.assertEqual(create.await_count, 2)
        self.assertEqual(self.sleep.await_count, 1)

    async def test_raises_after_all_retries(self):
        client, create = fake_client(*[RuntimeError("down")] * 3)
        with self.assertLogs("llm_client", level="ERROR"):
            with self.assertRaises(OracleUnavailable):
                await llm_client.ask_json([], {}, "machine_move", client=client)
        self.assertEqual(create.await_count, 3)

    async def test_unparseable_reply_is_a_service_fault(self):
        client, _ = fake_client(reply("maaf, saya tidak tahu"))
        with self.assertLogs("llm_client", level="WARNING"):
            with self.assertRaises(OracleUnavailable):
                await llm_client.ask_json([], {}, "machine_move", client=client)

    async def test_empty_reply_is_empty_object(self):
        client, _ = fake_client(reply(""))
        self.assertEqual(await llm_client.ask_json([], {}, "machine_move", client=client), {})

    async def test_missing_model_is_an_error(self):
        with patch("sambung_kata.llm_client.SETTINGS", replace(llm_client.SETTINGS, model="")):
            with self.assertRaises(ValueError):
                await llm_client.ask_json([], {}, "x", client=fake_client()[0])


class ParseReplyTests(unittest.TestCase):
    def test_code_fenced_json(self):
        self.assertEqual(llm_client.parse_json_reply('```json\n{"word": "gajah"}\n```'), {"word": "gajah"})

    def test_non_object_json_is_a_service_fault(self):
        with self.assertLogs("llm_client", level="WARNING"):
            with self.assertRaises(OracleUnavailable):
                llm_client.parse_json_reply("[1, 2]")
        self.assertEqual(llm_client.parse_json_reply(""), {})
        self.assertEqual(llm_client.parse_json_reply("   "), {})

    def test_extract_text_from_content_parts(self):
        rsp = reply([{"type": "text", "text": '{"a": 1}'}, SimpleNamespace(text="")])
        self.assertEqual(llm_client._extract_text(rsp), '{"a": 1}\n')
        self.assertEqual(llm_client._extract_text(SimpleNamespace(choices=[])), "")


if __name__ == "__main__":
    unittest.main()
