"""
NewsAPI source.

This module provides the NewsAPISource class for the newsapi.org ``everything``
endpoint. The API key travels in the ``X-Api-Key`` header.
"""

from typing import Any, Dict, List
import logging

import requests
from insider_agent.models import SourceArticle
from insider_agent.sources.base import NewsSource

logger = logging.getLogger(__name__)

SEARCH_URL = "https://newsapi.org/v2/everything"


class NewsAPISource(NewsSource):
    """Searches newsapi.org for recent articles about a topic."""

    name = "NewsAPI"

    def __init__(self, api_key: str, language: str = "pt", timeout: float = 10):
        self.api_key = api_key
        self.language = language
        self.timeout = timeout

    def _to_article(self, raw: Dict[str, Any]) -> SourceArticle:
        return SourceArticle(
            source=(raw.get("source") or {}).get("name") or self.name,
            title=raw.get("title") or "",
            url=raw.get("url") or "",
            description=raw.get("description") or "",
        )

    def search(self, topic: str) -> List[SourceArticle]:
        """Returns the articles newsapi.org finds for a topic."""
        if not self.api_key:
            logger.warning("NEWSAPI_KEY not set. Skipping %s.", self.name)
            return []

        try:
            resp = requests.get(
                SEARCH_URL,
                params={
                    "q": topic,
                    "language": self.language,
                    "sortBy": "publishedAt",
                    "pageSize": 5,
                },
                headers={"X-Api-Key": self.api_key},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as req_err:
            logger.error("Network error searching %s for %r: %s", self.name, topic, req_err)
            return []
        except ValueError as e:
            logger.error("Invalid JSON from %s for %r: %s", self.name, topic, e)
            return []

        if not isinstance(payload, dict) or payload.get("status") != "ok":
            message = payload.get("message") if isinstance(payload, dict) else payload
            logger.error("%s returned an error for %r: %s", self.name, topic, message)
            return []

        articles = [self._to_article(a) for a in payload.get("articles") or [] if isinstance(a, dict)]
        return [a for a in articles if a["title"] and a["url"]]
