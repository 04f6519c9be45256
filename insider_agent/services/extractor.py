"""
Topic extraction service.

This module provides the TopicExtractor class which condenses a chunk of transcript
into topics (and, in the detailed variant, a summary, intents and questions). It asks
the Gemini model first and falls back to local analysis for whatever the model could
not deliver, so a result is always produced.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional

from insider_agent.models import AnalysisResult
from insider_agent.services.llm import LLMService, parse_json_response
from insider_agent.text_analysis import (
    extract_keywords_local,
    keywords_from_response,
    summarize_local,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_INTENTS = ["Compartilhar informações", "Discutir o tema em pauta"]
PLACEHOLDER_QUESTIONS = ["Quais são os próximos passos?", "Que dados sustentam isso?"]


def _string_list(value: Any) -> List[str]:
    """Keeps the value only if it is a list of strings."""
    if not isinstance(value, list):
        return []
    return [v.strip() for v in value if isinstance(v, str) and v.strip()]


class TopicExtractor:
    """
    Extracts topics from transcript chunks.

    Args:
        detailed: Also produce summary, intents and questions.
        llm_factory: Builds an LLMService for a given API key.
        timeout: Request timeout, in seconds, for the remote call.
    """

    _SYSTEM_PROMPT = "Você extrai temas curtos e objetivos em {language}."

    _TOPICS_PROMPT = (
        "Identifique os principais temas presentes no texto a seguir para apoiar uma "
        "busca de notícias e informações relacionadas. Responda apenas em JSON válido "
        'com a chave "topics" (lista de strings curtas). Texto: """{text}"""'
    )

    _DETAILED_PROMPT = (
        "Analise o texto a seguir e responda apenas em JSON válido, sem markdown, com "
        'as chaves "summary" (resumo curto), "topics" (lista de strings curtas), '
        '"intents" (lista de intenções dos participantes) e "questions" (lista de '
        'perguntas relevantes). Texto: """{text}"""'
    )

    def __init__(
        self,
        detailed: bool = False,
        llm_factory: Optional[Callable[..., LLMService]] = None,
        timeout: float = 20.0,
    ):
        self.detailed = detailed
        self.llm_factory = llm_factory or LLMService
        self.timeout = timeout

    def _local_result(self, text: str) -> AnalysisResult:
        if not self.detailed:
            return AnalysisResult(
                topics=extract_keywords_local(text),
                summary=None,
                intents=None,
                questions=None,
            )
        return AnalysisResult(
            topics=extract_keywords_local(text),
            summary=summarize_local(text),
            intents=list(PLACEHOLDER_INTENTS),
            questions=list(PLACEHOLDER_QUESTIONS),
        )

    def _get_prompt(self, text: str) -> str:
        template = self._DETAILED_PROMPT if self.detailed else self._TOPICS_PROMPT
        return template.format(text=text)

    def _from_parsed(self, parsed: Dict[str, Any]) -> AnalysisResult:
        result = AnalysisResult(
            topics=_string_list(parsed.get("topics")),
            summary=None,
            intents=None,
            questions=None,
        )
        if self.detailed:
            summary = parsed.get("summary")
            result["summary"] = summary.strip() if isinstance(summary, str) else ""
            result["intents"] = _string_list(parsed.get("intents"))
            result["questions"] = _string_list(parsed.get("questions"))
        return result

    def _fill_missing(self, result: AnalysisResult, text: str) -> AnalysisResult:
        """Replaces empty fields with local analysis of the source text."""
        if not result["topics"]:
            result["topics"] = extract_keywords_local(text)
        if self.detailed:
            local = self._local_result(text)
            result["summary"] = result["summary"] or local["summary"]
            result["intents"] = result["intents"] or local["intents"]
            result["questions"] = result["questions"] or local["questions"]
        return result

    def extract(
        self, text: str, language: str, api_key: str, offline: bool
    ) -> AnalysisResult:
        """Turns a transcript chunk into an AnalysisResult. Never raises."""
        if offline or not api_key:
            logger.info("Processing chunk locally (offline=%s, key set=%s).", offline, bool(api_key))
            return self._local_result(text)

        logger.info("Asking Gemini for topics (%d chars, %s)...", len(text), language)
        llm = self.llm_factory(api_key, timeout=self.timeout)
        content = llm.generate_text(
            system_instruction=self._SYSTEM_PROMPT.format(language=language),
            prompt=self._get_prompt(text),
            temperature=0.4,
            max_tokens=800 if self.detailed else 400,
        )
        if content is None:
            return self._local_result(text)

        try:
            parsed = parse_json_response(content)
            if not isinstance(parsed, dict):
                raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
            result = self._from_parsed(parsed)
        except (json.JSONDecodeError, ValueError) as e:
            logger.error("Failed to parse Gemini topics: %s", e)
            result = self._local_result(text)
            salvaged = keywords_from_response(content)
            if salvaged:
                result["topics"] = salvaged

        result = self._fill_missing(result, text)
        logger.debug("Extraction result: %s", result)
        return result
