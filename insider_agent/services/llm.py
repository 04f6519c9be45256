"""
LLM Service Module.

This module provides the LLMService class, which interfaces with the Google Gemini API
to turn transcript text into topics and topics into enrichment content. Every call is
bounded by an HTTP timeout and failures are reported as ``None`` so that callers can
fall back to local analysis instead of raising.
"""

import json
import re

import logging
from typing import Any, Optional
from google import genai
from google.genai import errors

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_TIMEOUT = 20.0

_FENCE_OPEN = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"```\s*")


def parse_json_response(text: str) -> Any:
    """Safely parses JSON from LLM output, handling markdown blocks."""
    # Models sometimes wrap the body in ```json ... ``` despite instructions
    cleaned = _FENCE_OPEN.sub("", text)
    cleaned = _FENCE_CLOSE.sub("", cleaned).strip()
    try:
        return json.loads(cleaned)
    except RecursionError as e:
        raise ValueError("JSON answer is nested too deeply") from e


class LLMService:
    """
    Service for interacting with the Google Gemini API.

    One instance is bound to one API key and one request timeout. The client is
    created eagerly; if creation fails the service stays usable but every call
    returns ``None``.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.client: Optional[genai.Client] = None
        try:
            # HttpOptions.timeout is expressed in milliseconds
            self.client = genai.Client(
                api_key=api_key, http_options={"timeout": int(timeout * 1000)}
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Failed to initialize Gemini client: %s", e)
            self.client = None

    def generate_text(
        self,
        system_instruction: str,
        prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> Optional[str]:
        """
        Sends one completion request and returns the raw answer text.

        Returns ``None`` on any transport failure, non-success status or timeout.
        """
        if not self.client:
            logger.error("Gemini client not initialized.")
            return None

        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=prompt,
                config={
                    "system_instruction": system_instruction,
                    "temperature": temperature,
                    "max_output_tokens": max_tokens,
                    "response_mime_type": "application/json",
                },
            )
            return response.text if response.text else ""
        except errors.APIError as e:
            logger.error("Gemini API error (status %s): %s", e.code, e.message)
            return None
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Gemini request failed: %s", e)
            return None
