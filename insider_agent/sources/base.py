"""
Base classes and interfaces for news sources.

This module defines the contract that all news sources must follow.
"""

from typing import Protocol, List
from insider_agent.models import SourceArticle


class NewsSource(Protocol):
    """
    Protocol for news sources.

    Classes implementing this protocol look up articles about one topic and
    return them most relevant first. Network and parse errors are absorbed by
    the implementation, which returns an empty list instead.
    """

    name: str

    def search(self, topic: str) -> List[SourceArticle]:
        """Searches articles about a topic."""
