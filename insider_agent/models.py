"""
Data models for the Insider Agent application.
"""

from typing import TypedDict, List, Optional


class Settings(TypedDict):
    """Type definition for the user-controlled pipeline settings."""

    cadence: float
    language: str
    apiKey: str


class NewsItem(TypedDict):
    """Type definition for a news link attached to a feed item."""

    title: str
    url: str


class AnalysisResult(TypedDict):
    """Type definition for the output of one extraction cycle."""

    topics: List[str]
    summary: Optional[str]  # Detailed variant only
    intents: Optional[List[str]]  # Detailed variant only
    questions: Optional[List[str]]  # Detailed variant only


class EnrichmentResult(TypedDict):
    """Type definition for enrichment content tagged with its feed id."""

    id: int
    news: List[NewsItem]
    insights: List[str]


class FeedItem(TypedDict):
    """Type definition for one entry of the running feed."""

    id: int
    topics: List[str]
    summary: Optional[str]
    intents: Optional[List[str]]
    questions: Optional[List[str]]
    news: List[NewsItem]
    insights: List[str]
    timestamp: int


class SourceArticle(TypedDict):
    """Type definition for an article returned by a news source."""

    source: str
    title: str
    url: str
    description: str
