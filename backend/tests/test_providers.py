from __future__ import annotations

import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

import requests

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from app.config import AdvisorSettings  # noqa: E402
from app.services.advisor import (  # noqa: E402
    FinancialSnapshot,
    GatewayProvider,
    GeminiProvider,
    OpenAIProvider,
    build_providers,
)

POST = "app.services.advisor.providers.requests.post"
SNAPSHOT = FinancialSnapshot(total_balance=1234.5, monthly_income=3000, monthly_expenses=500)


def _response(status_code: int = 200, payload=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text or ("{}" if payload is not None else "")
    response.reason = "error" if status_code >= 400 else "OK"
    response.json.return_value = payload if payload is not None else {}
    return response


def _completion(text: str) -> MagicMock:
    return _response(200, {"choices": [{"message": {"content": text}}]})


class OpenAIProviderTests(unittest.TestCase):
    def test_success_posts_system_and_user_messages(self) -> None:
        provider = OpenAIProvider(api_key="sk-test", timeout=12)
        with patch(POST, return_value=_completion("Trim dining out.")) as mocked:
            result = provider.generate("How do I cut costs?", SNAPSHOT)

        self.assertTrue(result.success)
        self.assertEqual(result.content, "Trim dining out.")
        self.assertEqual(result.provider_name, "openai")
        kwargs = mocked.call_args.kwargs
        self.assertEqual(mocked.call_args.args[0], "https://api.openai.com/v1/chat/completions")
        self.assertEqual(kwargs["timeout"], 12)
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer sk-test")
        body = kwargs["json"]
        self.assertEqual(body["temperature"], 0.7)
        self.assertEqual(body["max_tokens"], 1000)
        self.assertEqual([message["role"] for message in body["messages"]], ["system", "user"])
        self.assertIn("Total balance: $1,234.50", body["messages"][0]["content"])
        self.assertEqual(body["messages"][1]["content"], "How do I cut costs?")

    def test_unconfigured_provider_makes_no_request(self) -> None:
        provider = OpenAIProvider(api_key="")
        with patch(POST) as mocked:
            result = provider.generate("hi", SNAPSHOT)
        self.assertFalse(result.success)
        self.assertEqual(result.error, "not configured")
        mocked.assert_not_called()

    def test_http_error_is_reported_not_raised(self) -> None:
        provider = OpenAIProvider(api_key="sk-test")
        with patch(POST, return_value=_response(500, text="upstream down")):
            result = provider.generate("hi", SNAPSHOT)
        self.assertFalse(result.success)
        self.assertIn("500", result.error)

    def test_timeout_is_reported_not_raised(self) -> None:
        provider = OpenAIProvider(api_key="sk-test")
        with patch(POST, side_effect=requests.Timeout("read timed out")):
            result = provider.generate("hi", SNAPSHOT)
        self.assertFalse(result.success)
        self.assertIn("timed out", result.error)

    def test_malformed_envelope_is_reported_not_raised(self) -> None:
        provider = OpenAIProvider(api_key="sk-test")
        with patch(POST, return_value=_response(200, {"unexpected": True})):
            result = provider.generate("hi", SNAPSHOT)
        self.assertFalse(result.success)
        self.assertIn("malformed", result.error)


class GeminiProviderTests(unittest.TestCase):
    def test_success_sends_prompt_as_single_text_blob(self) -> None:
        provider = GeminiProvider(api_key="g-key")
        payload = {"candidates": [{"content": {"parts": [{"text": "Save 20% of income."}]}}]}
        with patch(POST, return_value=_response(200, payload)) as mocked:
            result = provider.generate("How much should I save?", SNAPSHOT)

        self.assertTrue(result.success)
        self.assertEqual(result.content, "Save 20% of income.")
        self.assertEqual(result.provider_name, "gemini")
        kwargs = mocked.call_args.kwargs
        self.assertTrue(mocked.call_args.args[0].endswith("/models/gemini-pro:generateContent"))
        self.assertEqual(kwargs["params"], {"key": "g-key"})
        text = kwargs["json"]["contents"][0]["parts"][0]["text"]
        self.assertTrue(text.startswith("You are FinanceFlow's AI Financial Assistant"))
        self.assertTrue(text.endswith("User Query: How much should I save?"))
        config = kwargs["json"]["generationConfig"]
        self.assertEqual(config["temperature"], 0.7)
        self.assertEqual(config["maxOutputTokens"], 1000)

    def test_empty_candidate_is_a_failure(self) -> None:
        provider = GeminiProvider(api_key="g-key")
        payload = {"candidates": [{"content": {"parts": [{"text": "  "}]}}]}
        with patch(POST, return_value=_response(200, payload)):
            result = provider.generate("hi", SNAPSHOT)
        self.assertFalse(result.success)

    def test_connection_error_is_reported_not_raised(self) -> None:
        provider = GeminiProvider(api_key="g-key")
        with patch(POST, side_effect=requests.ConnectionError("dns failure")):
            result = provider.generate("hi", SNAPSHOT)
        self.assertFalse(result.success)
        self.assertIn("dns failure", result.error)


class GatewayProviderTests(unittest.TestCase):
    def _provider(self, keys=("k1", "k2"), models=("m1", "m2")) -> GatewayProvider:
        return GatewayProvider(base_url="https://gateway.test/api/v1/", api_keys=list(keys), models=list(models))

    @staticmethod
    def _attempts(mocked: MagicMock) -> list[tuple[str, str]]:
        return [
            (call.kwargs["json"]["model"], call.kwargs["headers"]["Authorization"].split()[-1])
            for call in mocked.call_args_list
        ]

    def test_unconfigured_without_keys(self) -> None:
        provider = self._provider(keys=())
        self.assertFalse(provider.configured)
        with patch(POST) as mocked:
            result = provider.generate("hi", SNAPSHOT)
        self.assertFalse(result.success)
        mocked.assert_not_called()

    def test_rate_limited_key_rotates_to_next_key(self) -> None:
        provider = self._provider()
        with patch(POST, side_effect=[_response(429, text="slow down"), _completion("ok")]) as mocked:
            result = provider.generate("hi", SNAPSHOT)
        self.assertTrue(result.success)
        self.assertEqual(result.model, "m1")
        self.assertEqual(self._attempts(mocked), [("m1", "k1"), ("m1", "k2")])
        self.assertEqual(mocked.call_args.args[0], "https://gateway.test/api/v1/chat/completions")

    def test_unauthorized_key_is_retired_for_remaining_models(self) -> None:
        provider = self._provider()
        responses = [_response(401, text="bad key"), _response(503, text="busy"), _completion("ok")]
        with patch(POST, side_effect=responses) as mocked:
            result = provider.generate("hi", SNAPSHOT)
        self.assertTrue(result.success)
        self.assertEqual(result.model, "m2")
        self.assertEqual(self._attempts(mocked), [("m1", "k1"), ("m1", "k2"), ("m2", "k2")])

    def test_unavailable_model_skips_to_next_model(self) -> None:
        provider = self._provider()
        with patch(POST, side_effect=[_response(404, text="no such model"), _completion("ok")]) as mocked:
            result = provider.generate("hi", SNAPSHOT)
        self.assertTrue(result.success)
        self.assertEqual(self._attempts(mocked), [("m1", "k1"), ("m2", "k1")])

    def test_round_robin_starts_each_call_on_the_next_key(self) -> None:
        provider = self._provider()
        with patch(POST, side_effect=[_completion("first"), _completion("second")]) as mocked:
            provider.generate("hi", SNAPSHOT)
            provider.generate("hi again", SNAPSHOT)
        self.assertEqual(self._attempts(mocked), [("m1", "k1"), ("m1", "k2")])

    def test_all_attempts_failing_reports_last_error(self) -> None:
        provider = self._provider(keys=("k1",), models=("m1", "m2"))
        with patch(POST, side_effect=requests.Timeout("timed out")) as mocked:
            result = provider.generate("hi", SNAPSHOT)
        self.assertFalse(result.success)
        self.assertEqual(mocked.call_count, 2)
        self.assertIn("m2", result.error)

    def test_all_keys_unauthorized_stops_early(self) -> None:
        provider = self._provider(keys=("k1",), models=("m1", "m2", "m3"))
        with patch(POST, return_value=_response(403, text="forbidden")) as mocked:
            result = provider.generate("hi", SNAPSHOT)
        self.assertFalse(result.success)
        self.assertEqual(mocked.call_count, 1)


class BuildProvidersTests(unittest.TestCase):
    def test_priority_order_and_shared_settings(self) -> None:
        settings = AdvisorSettings(
            gateway_api_keys=["k1"],
            openai_api_key="sk",
            provider_timeout_sec=9,
            currency="EUR",
            locale="de-DE",
        )
        providers = build_providers(settings)
        self.assertEqual([provider.name for provider in providers], ["gateway", "openai", "gemini"])
        self.assertEqual([provider.configured for provider in providers], [True, True, False])
        self.assertTrue(all(provider.timeout == 9 for provider in providers))
        self.assertIn("1.234,50 €", providers[1].system_prompt(SNAPSHOT))


if __name__ == "__main__":
    unittest.main()
