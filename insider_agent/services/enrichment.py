"""
Enrichment service.

This module provides the Enricher class, which attaches news links and insight
strings to the topics of a feed item. Content comes from one of two strategies:

- ``generative``: one Gemini completion that returns insights and news-like items.
- ``retrieval``: a sequential lookup of each topic in the configured news sources.

Offline mode, a missing key, and any remote failure all degrade to deterministic
placeholder content. The result is never empty and the call never raises.
"""

import json
import logging
from typing import Any, Callable, List, Optional, Sequence
from urllib.parse import quote_plus

from insider_agent.models import EnrichmentResult, NewsItem
from insider_agent.services.llm import LLMService, parse_json_response
from insider_agent.sources.base import NewsSource

logger = logging.getLogger(__name__)

GENERATIVE = "generative"
RETRIEVAL = "retrieval"
STRATEGIES = (GENERATIVE, RETRIEVAL)

MAX_LINKS = 3
RAW_INSIGHT_CHARS = 300


def search_url(query: str) -> str:
    """Builds a web search URL for a free-text query."""
    return f"https://www.google.com/search?q={quote_plus(query)}"


def news_search_url(topic: str) -> str:
    """Builds a news search URL for a topic."""
    return f"https://news.google.com/search?q={quote_plus(topic)}&hl=pt-BR"


def _is_http_url(url: Any) -> bool:
    return isinstance(url, str) and url.lower().startswith(("http://", "https://"))


class Enricher:
    """
    Produces news and insights for a list of topics.

    Args:
        strategy: ``generative`` or ``retrieval``.
        sources: News sources queried, in order, by the retrieval strategy.
        llm_factory: Builds an LLMService for a given API key.
        timeout: Request timeout, in seconds, for the generative call.
    """

    _SYSTEM_PROMPT = (
        "Você é um analista especializado que fornece insights profundos e informações "
        "relevantes. Sempre responda em JSON puro, sem markdown."
    )

    _PROMPT = """Como especialista em análise e pesquisa, analise os seguintes tópicos e forneça informações valiosas:

Tópicos: {topics}

Gere conteúdo REAL e RELEVANTE:

1. **3 Insights Profundos**: Análises perspicazes e observações importantes sobre estes tópicos. Seja específico e informativo.

2. **3 Informações Atuais**: Títulos de notícias ou informações recentes e relevantes sobre estes tópicos.

IMPORTANTE: Responda APENAS em JSON válido, sem markdown:
{{
  "insights": ["Insight 1", "Insight 2", "Insight 3"],
  "news": [
    {{"title": "Título 1", "url": "https://google.com/search?q=termo1"}},
    {{"title": "Título 2", "url": "https://google.com/search?q=termo2"}},
    {{"title": "Título 3", "url": "https://google.com/search?q=termo3"}}
  ]
}}"""

    def __init__(
        self,
        strategy: str = GENERATIVE,
        sources: Optional[Sequence[NewsSource]] = None,
        llm_factory: Optional[Callable[..., LLMService]] = None,
        timeout: float = 10.0,
    ):
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown enrichment strategy: {strategy!r}")
        self.strategy = strategy
        self.sources = list(sources or [])
        self.llm_factory = llm_factory or LLMService
        self.timeout = timeout

    def _offline_content(self, topics: List[str], news: List[NewsItem], insights: List[str]) -> None:
        for topic in topics:
            insights.append(f"📊 {topic}: insight gerado offline")
        for topic in topics[:MAX_LINKS]:
            news.append(
                NewsItem(
                    title=f"🔍 Pesquisar {topic}",
                    url=search_url(f"{topic} notícias Brasil"),
                )
            )

    def _parse_generated(self, parsed: Any, news: List[NewsItem], insights: List[str]) -> None:
        if not isinstance(parsed, dict):
            raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")

        raw_insights = parsed.get("insights")
        if isinstance(raw_insights, list):
            for entry in raw_insights:
                if isinstance(entry, str) and entry.strip():
                    insights.append(entry.strip())

        raw_news = parsed.get("news")
        if isinstance(raw_news, list):
            for item in raw_news:
                if not isinstance(item, dict):
                    continue
                title = item.get("title")
                if not isinstance(title, str) or not title.strip():
                    continue
                title = title.strip()
                url = item.get("url")
                if not _is_http_url(url):
                    url = search_url(title)
                news.append(NewsItem(title=title, url=url))

    def _generate(
        self, topics: List[str], api_key: str, news: List[NewsItem], insights: List[str]
    ) -> None:
        logger.info("Asking Gemini to enrich %d topics...", len(topics))
        llm = self.llm_factory(api_key, timeout=self.timeout)
        content = llm.generate_text(
            system_instruction=self._SYSTEM_PROMPT,
            prompt=self._PROMPT.format(topics=", ".join(topics)),
            temperature=0.8,
            max_tokens=800,
        )
        if content is None:
            insights.append(f"⚠️ Não foi possível enriquecer: {', '.join(topics[:2])}")
            return

        try:
            self._parse_generated(parse_json_response(content), news, insights)
        except (json.JSONDecodeError, ValueError) as e:
            logger.error("Failed to parse Gemini enrichment: %s", e)
            if content.strip():
                insights.append(f"💡 {content.strip()[:RAW_INSIGHT_CHARS]}")

    def _retrieve(self, topics: List[str], news: List[NewsItem], insights: List[str]) -> None:
        for topic in topics:
            for source in self.sources:
                try:
                    articles = source.search(topic)
                except Exception as e:  # pylint: disable=broad-exception-caught
                    logger.error("%s failed for %r: %s", source.name, topic, e)
                    continue
                if not articles:
                    logger.debug("No %s results for %r", source.name, topic)
                    continue
                first = articles[0]
                news.append(NewsItem(title=first["title"], url=first["url"]))
                if first.get("description"):
                    insights.append(f"{topic}: {first['description']}")

    def enrich(
        self, feed_id: int, topics: List[str], api_key: str, offline: bool
    ) -> EnrichmentResult:
        """Builds the enrichment for one feed item. Never raises."""
        news: List[NewsItem] = []
        insights: List[str] = []

        if not topics:
            logger.info("No topics for feed item %s, using default content.", feed_id)
            return EnrichmentResult(
                id=feed_id,
                news=[NewsItem(title="Nenhum tópico para pesquisar", url="#")],
                insights=["Aguardando tópicos para enriquecer"],
            )

        if offline:
            logger.info("Enriching feed item %s offline.", feed_id)
            self._offline_content(topics, news, insights)
        elif self.strategy == RETRIEVAL:
            self._retrieve(topics, news, insights)
        elif not api_key:
            logger.info("No API key, enriching feed item %s with placeholders.", feed_id)
            self._offline_content(topics, news, insights)
        else:
            self._generate(topics, api_key, news, insights)

        if not insights:
            logger.info("No insights generated for feed item %s, adding defaults.", feed_id)
            insights.extend(f"💭 {topic}: mantenha no radar" for topic in topics)

        if not news:
            logger.info("No news generated for feed item %s, adding search links.", feed_id)
            news.extend(
                NewsItem(title=f"📰 Pesquisar notícias: {topic}", url=news_search_url(topic))
                for topic in topics[:MAX_LINKS]
            )

        logger.info(
            "Enrichment for feed item %s complete: %d insights, %d news.",
            feed_id,
            len(insights),
            len(news),
        )
        return EnrichmentResult(id=feed_id, news=news, insights=insights)
