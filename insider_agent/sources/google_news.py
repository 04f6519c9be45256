"""
Google News RSS source.

This module provides the GoogleNewsSource class, which queries the public Google
News RSS search endpoint. It needs no API key.
"""

import re
from typing import List
import logging

import requests
import feedparser  # type: ignore
from insider_agent.models import SourceArticle
from insider_agent.sources.base import NewsSource

logger = logging.getLogger(__name__)

SEARCH_URL = "https://news.google.com/rss/search"


class GoogleNewsSource(NewsSource):
    """Searches the Google News RSS feed for a topic."""

    name = "Google News"

    def __init__(self, language: str = "pt-BR", country: str = "BR", timeout: float = 10):
        self.language = language
        self.country = country
        self.timeout = timeout

    def _clean_html(self, raw_html: str) -> str:
        """Removes HTML tags from a string."""
        if not raw_html:
            return ""
        cleaner = re.compile("<.*?>")
        text = re.sub(cleaner, "", raw_html)
        return " ".join(text.split())

    def search(self, topic: str) -> List[SourceArticle]:
        """Fetches the RSS search feed for a topic and parses its entries."""
        items: List[SourceArticle] = []
        params = {
            "q": topic,
            "hl": self.language,
            "gl": self.country,
            "ceid": f"{self.country}:{self.language.split('-')[0]}",
        }
        try:
            try:
                resp = requests.get(
                    SEARCH_URL,
                    params=params,
                    timeout=self.timeout,
                    headers={"User-Agent": "InsiderAgent/1.0"},
                )
                resp.raise_for_status()
                feed_content = resp.content
            except requests.RequestException as req_err:
                logger.error("Network error searching %s for %r: %s", self.name, topic, req_err)
                return []

            feed = feedparser.parse(feed_content)
            for entry in feed.entries:
                title = entry.title if hasattr(entry, "title") else ""
                link = entry.link if hasattr(entry, "link") else ""
                if not title or not link:
                    continue
                raw_summary = entry.summary if hasattr(entry, "summary") else ""
                items.append(
                    SourceArticle(
                        source=self.name,
                        title=title,
                        url=link,
                        description=self._clean_html(raw_summary)[:300],
                    )
                )
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Error parsing %s results for %r: %s", self.name, topic, e)
        return items
