import unittest
from unittest import mock

import requests

from heal_deploy.config import LLMConfig
from heal_deploy.errors import OracleError
from heal_deploy.llm import (
    AnthropicProvider,
    GeminiProvider,
    LLMRepairOracle,
    OpenAICompatibleProvider,
    OpenAIProvider,
    create_llm_provider,
    create_repair_oracle,
)


def _response(status_code=200, payload=None):
    response = mock.MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.text = "error body"
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} error")
    return response


GEMINI_OK = {"candidates": [{"content": {"parts": [{"text": '{"fixes": []}'}]}}]}
CHAT_OK = {"choices": [{"message": {"content": '{"fixes": []}'}}]}


class ProviderFactoryTests(unittest.TestCase):
    def test_known_providers(self) -> None:
        cases = [
            ("gemini", GeminiProvider),
            ("openai", OpenAIProvider),
            ("anthropic", AnthropicProvider),
            ("claude", AnthropicProvider),
        ]
        for name, cls in cases:
            with self.subTest(provider=name):
                provider = create_llm_provider(LLMConfig(provider=name, api_key="k"))
                self.assertIsInstance(provider, cls)

    def test_openai_compatible_requires_endpoint(self) -> None:
        with self.assertRaises(ValueError):
            create_llm_provider(LLMConfig(provider="custom"))
        provider = create_llm_provider(
            LLMConfig(provider="openai-compatible", endpoint="http://localhost:11434/v1/", model="llama3")
        )
        self.assertIsInstance(provider, OpenAICompatibleProvider)
        url, headers, body = provider.build_request("hi", None, "json")
        self.assertEqual(url, "http://localhost:11434/v1/chat/completions")
        self.assertNotIn("Authorization", headers)
        self.assertEqual(body["model"], "llama3")

    def test_unknown_provider(self) -> None:
        with self.assertRaises(ValueError):
            create_llm_provider(LLMConfig(provider="mystery", api_key="k"))

    def test_missing_key_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            GeminiProvider(LLMConfig(provider="gemini", api_key=None))


class GenerateResponseTests(unittest.TestCase):
    def test_gemini_request_and_answer(self) -> None:
        provider = GeminiProvider(LLMConfig(api_key="secret"))
        provider.session = mock.MagicMock()
        provider.session.post.return_value = _response(payload=GEMINI_OK)

        text = provider.generate_response("fix it", system_prompt="you fix things")

        self.assertEqual(text, '{"fixes": []}')
        _, kwargs = provider.session.post.call_args
        self.assertEqual(kwargs["headers"]["x-goog-api-key"], "secret")
        sent = kwargs["json"]["contents"][0]["parts"][0]["text"]
        self.assertTrue(sent.startswith("you fix things"))
        self.assertEqual(kwargs["json"]["generationConfig"]["responseMimeType"], "application/json")

    def test_openai_system_prompt_is_a_message(self) -> None:
        provider = OpenAIProvider(LLMConfig(provider="openai", api_key="k"))
        provider.session = mock.MagicMock()
        provider.session.post.return_value = _response(payload=CHAT_OK)

        self.assertEqual(provider.generate_response("p", system_prompt="s"), '{"fixes": []}')
        _, kwargs = provider.session.post.call_args
        roles = [m["role"] for m in kwargs["json"]["messages"]]
        self.assertEqual(roles, ["system", "user"])
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer k")

    def test_anthropic_answer(self) -> None:
        provider = AnthropicProvider(LLMConfig(provider="anthropic", api_key="k"))
        provider.session = mock.MagicMock()
        provider.session.post.return_value = _response(payload={"content": [{"type": "text", "text": "ok"}]})

        self.assertEqual(provider.generate_response("p", system_prompt="s"), "ok")
        _, kwargs = provider.session.post.call_args
        self.assertEqual(kwargs["json"]["system"], "s")

    @mock.patch("heal_deploy.llm.base.time.sleep")
    def test_rate_limit_is_retried(self, sleep) -> None:
        provider = OpenAIProvider(LLMConfig(provider="openai", api_key="k"))
        provider.session = mock.MagicMock()
        provider.session.post.side_effect = [_response(429), _response(payload=CHAT_OK)]

        self.assertEqual(provider.generate_response("p"), '{"fixes": []}')
        sleep.assert_called_once_with(30)

    @mock.patch("heal_deploy.llm.base.time.sleep")
    def test_rate_limit_gives_up(self, sleep) -> None:
        provider = OpenAIProvider(LLMConfig(provider="openai", api_key="k"))
        provider.session = mock.MagicMock()
        provider.session.post.return_value = _response(429)

        self.assertIsNone(provider.generate_response("p", max_retries=2))
        self.assertEqual(provider.session.post.call_count, 2)
        self.assertEqual(sleep.call_count, 1)

    def test_http_and_network_errors_return_none(self) -> None:
        provider = OpenAIProvider(LLMConfig(provider="openai", api_key="k"))
        provider.session = mock.MagicMock()
        provider.session.post.return_value = _response(500)
        self.assertIsNone(provider.generate_response("p"))

        provider.session.post.side_effect = requests.exceptions.ConnectionError("down")
        self.assertIsNone(provider.generate_response("p"))

    def test_empty_answer_returns_none(self) -> None:
        provider = OpenAIProvider(LLMConfig(provider="openai", api_key="k"))
        provider.session = mock.MagicMock()
        provider.session.post.return_value = _response(payload={"choices": []})
        self.assertIsNone(provider.generate_response("p"))


class StubProvider:
    name = "stub"

    def __init__(self, answer):
        self.answer = answer
        self.calls = []

    def generate_response(self, prompt, system_prompt=None, response_format="json", timeout=60, max_retries=3):
        self.calls.append((prompt, system_prompt, response_format, timeout, max_retries))
        return self.answer


class OracleTests(unittest.IsolatedAsyncioTestCase):
    async def test_generate_delegates_to_provider(self) -> None:
        provider = StubProvider('{"fixes": []}')
        oracle = LLMRepairOracle(provider, timeout=5)  # type: ignore[arg-type]

        self.assertTrue(oracle.is_available())
        self.assertEqual(await oracle.generate("p", system_prompt="s"), '{"fixes": []}')
        self.assertEqual(provider.calls[0], ("p", "s", "json", 5, 3))

    async def test_empty_answer_raises(self) -> None:
        oracle = LLMRepairOracle(StubProvider(None))  # type: ignore[arg-type]
        with self.assertRaises(OracleError):
            await oracle.generate("p")

    async def test_unconfigured_oracle(self) -> None:
        oracle = LLMRepairOracle(None)
        self.assertFalse(oracle.is_available())
        with self.assertRaises(OracleError):
            await oracle.generate("p")

    def test_factory_degrades_without_key(self) -> None:
        self.assertFalse(create_repair_oracle(LLMConfig(provider="gemini", api_key=None)).is_available())
        self.assertFalse(create_repair_oracle(LLMConfig(provider="none")).is_available())
        self.assertTrue(create_repair_oracle(LLMConfig(provider="openai", api_key="k")).is_available())


if __name__ == "__main__":
    unittest.main()
