"""Unit tests for the Gemini LLM service."""

import json
import unittest
from unittest.mock import MagicMock, patch

from google.genai import errors

from insider_agent.services.llm import LLMService, parse_json_response


class TestParseJsonResponse(unittest.TestCase):
    def test_plain_json(self):
        self.assertEqual(parse_json_response('{"topics": ["a"]}'), {"topics": ["a"]})

    def test_fenced_json(self):
        text = '```json\n{"topics": ["economia"]}\n```'
        self.assertEqual(parse_json_response(text), {"topics": ["economia"]})

    def test_fence_without_language(self):
        text = 'Aqui está:\n```\n{"topics": []}\n```'
        with self.assertRaises(json.JSONDecodeError):
            # Prose around the fence is not JSON
            parse_json_response(text)
        self.assertEqual(parse_json_response('```\n{"topics": []}\n```'), {"topics": []})

    def test_invalid(self):
        with self.assertRaises(ValueError):
            parse_json_response("not json")

    def test_deep_nesting_raises_value_error(self):
        with self.assertRaises(ValueError):
            parse_json_response("[" * 200000)


class TestLLMService(unittest.TestCase):
    @patch("insider_agent.services.llm.genai.Client")
    def test_client_gets_timeout_in_ms(self, mock_client):
        LLMService("key", timeout=10)
        mock_client.assert_called_once_with(api_key="key", http_options={"timeout": 10000})

    @patch("insider_agent.services.llm.genai.Client")
    def test_generate_text_sends_bounded_request(self, mock_client):
        mock_client.return_value.models.generate_content.return_value = MagicMock(
            text='{"topics": ["x"]}'
        )
        service = LLMService("key", model="test-model")

        text = service.generate_text("system", "prompt", temperature=0.4, max_tokens=400)

        self.assertEqual(text, '{"topics": ["x"]}')
        kwargs = mock_client.return_value.models.generate_content.call_args.kwargs
        self.assertEqual(kwargs["model"], "test-model")
        self.assertEqual(kwargs["contents"], "prompt")
        self.assertEqual(kwargs["config"]["system_instruction"], "system")
        self.assertEqual(kwargs["config"]["temperature"], 0.4)
        self.assertEqual(kwargs["config"]["max_output_tokens"], 400)

    @patch("insider_agent.services.llm.genai.Client")
    def test_empty_answer(self, mock_client):
        mock_client.return_value.models.generate_content.return_value = MagicMock(text=None)
        self.assertEqual(LLMService("key").generate_text("s", "p", 0.4, 10), "")

    @patch("insider_agent.services.llm.genai.Client")
    def test_api_error_returns_none(self, mock_client):
        mock_client.return_value.models.generate_content.side_effect = errors.APIError(
            500, {"error": {"code": 500, "message": "boom", "status": "INTERNAL"}}
        )
        self.assertIsNone(LLMService("key").generate_text("s", "p", 0.4, 10))

    @patch("insider_agent.services.llm.genai.Client")
    def test_transport_error_returns_none(self, mock_client):
        mock_client.return_value.models.generate_content.side_effect = TimeoutError("timed out")
        self.assertIsNone(LLMService("key").generate_text("s", "p", 0.4, 10))

    @patch("insider_agent.services.llm.genai.Client", side_effect=ValueError("bad key"))
    def test_client_init_failure(self, _mock_client):
        service = LLMService("key")
        self.assertIsNone(service.client)
        self.assertIsNone(service.generate_text("s", "p", 0.4, 10))


if __name__ == "__main__":
    unittest.main()
