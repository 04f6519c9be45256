"""
Feed correlator.

The FeedCorrelator owns the running feed. Each extraction cycle becomes one
FeedItem with a fresh id; enrichment that completes later is merged back into
the item carrying the same id. All mutations happen under a single lock and are
written through to the configured store.
"""

import datetime
import json
import logging
import os
import threading
import time
from typing import List, Optional

from insider_agent.models import AnalysisResult, EnrichmentResult, FeedItem
from insider_agent.services.db import FeedStorage

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class FeedCorrelator:
    """Creates feed items from analysis results and merges enrichment by id."""

    def __init__(self, store: Optional[FeedStorage] = None, clock=now_ms):
        self.store = store
        self.clock = clock
        self._lock = threading.Lock()
        self._feed: List[FeedItem] = []
        self._last_id = 0

    def _persist(self) -> None:
        if self.store is not None:
            self.store.save([dict(item) for item in self._feed])  # type: ignore[misc]

    def _next_id(self) -> int:
        # Two cycles inside the same millisecond still get distinct ids
        self._last_id = max(self.clock(), self._last_id + 1)
        return self._last_id

    def load(self) -> int:
        """Restores the feed from the store. Returns the number of items loaded."""
        if self.store is None:
            return 0
        cached = [
            item
            for item in self.store.load()
            if isinstance(item, dict) and isinstance(item.get("id"), int)
        ]
        with self._lock:
            if cached:
                last_id = max(item["id"] for item in cached)
                self._feed = cached
                self._last_id = max(self._last_id, last_id)
            return len(self._feed)

    def add_analysis(self, result: AnalysisResult) -> FeedItem:
        """Appends a new feed item for an extraction result and returns a copy."""
        with self._lock:
            feed_id = self._next_id()
            item = FeedItem(
                id=feed_id,
                topics=list(result["topics"]),
                summary=result.get("summary"),
                intents=result.get("intents"),
                questions=result.get("questions"),
                news=[],
                insights=[],
                timestamp=feed_id,
            )
            self._feed.append(item)
            self._persist()
            logger.info("Feed item %s created with %d topics.", feed_id, len(item["topics"]))
            return json.loads(json.dumps(item))

    def apply_enrichment(self, result: EnrichmentResult) -> bool:
        """
        Replaces news and insights of the item whose id matches the result.

        Returns False, without raising, when the item no longer exists (for
        example because the history was cleared while enrichment was running).
        """
        with self._lock:
            for item in self._feed:
                if item["id"] == result["id"]:
                    item["news"] = list(result["news"])
                    item["insights"] = list(result["insights"])
                    self._persist()
                    logger.info("Feed item %s enriched.", result["id"])
                    return True
        logger.info("Feed item %s no longer exists. Dropping enrichment.", result["id"])
        return False

    def clear(self) -> None:
        """Removes every feed item."""
        with self._lock:
            self._feed = []
            self._persist()
        logger.info("Feed history cleared.")

    def items(self) -> List[FeedItem]:
        """Returns a snapshot of the feed."""
        with self._lock:
            return json.loads(json.dumps(self._feed))

    def get(self, feed_id: int) -> Optional[FeedItem]:
        """Returns a copy of one feed item, or None."""
        for item in self.items():
            if item["id"] == feed_id:
                return item
        return None

    def to_json(self) -> str:
        """Serializes the whole feed."""
        return json.dumps(self.items(), ensure_ascii=False, indent=2)

    def export(self, target: str) -> str:
        """
        Writes the feed as JSON and returns the file path.

        If ``target`` is an existing directory the file is named after the
        current time, otherwise ``target`` is used as the file path.
        """
        path = target
        if os.path.isdir(target):
            stamp = datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
            path = os.path.join(target, f"insider-agent-{stamp}.json")
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.to_json())
        logger.info("Feed exported to %s.", path)
        return path
