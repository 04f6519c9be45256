"""
Database service for feed persistence.

This module provides the feed stores that mirror the in-memory feed: FeedStore
writes through to Google Firestore, JsonFeedStore to a local JSON file. Both
expose ``save(feed)`` and ``load()`` and never take part in pipeline
correctness; a store that cannot be reached only logs.
"""

import json
import logging
import os
from typing import List, Optional, Protocol

from google.cloud import firestore  # type: ignore
from insider_agent.models import FeedItem

logger = logging.getLogger(__name__)


class FeedStorage(Protocol):
    """Key/value blob store for the feed."""

    def save(self, feed: List[FeedItem]) -> None:
        """Replaces the stored feed."""

    def load(self) -> List[FeedItem]:
        """Returns the stored feed, oldest item first."""


class FeedStore:
    """Mirrors the feed into a Google Firestore collection, one document per item."""

    def __init__(self, project_id: Optional[str], collection: str = "insider_feed"):
        if not project_id:
            logger.warning("GCP_PROJECT_ID not set. Feed persistence disabled.")
            self.db = None
            return

        try:
            self.db = firestore.Client(project=project_id)
            self.collection = self.db.collection(collection)
            logger.info("Connected to Firestore for feed persistence.")
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.warning("Firestore connection failed: %s", e)
            self.db = None

    def get_id(self, item: FeedItem) -> str:
        """Document id for a feed item."""
        return str(item["id"])

    def save(self, feed: List[FeedItem]) -> None:
        """Writes every item and deletes documents no longer in the feed."""
        if not self.db:
            return

        try:
            keep = {self.get_id(item) for item in feed}
            stale = [
                snap.reference
                for snap in self.collection.stream()
                if snap.id not in keep
            ]

            batch = self.db.batch()
            count = 0

            for item in feed:
                batch.set(self.collection.document(self.get_id(item)), dict(item))
                count += 1
                # Firestore batches limited to 500 writes
                if count >= 400:
                    batch.commit()
                    batch = self.db.batch()
                    count = 0

            for ref in stale:
                batch.delete(ref)
                count += 1
                if count >= 400:
                    batch.commit()
                    batch = self.db.batch()
                    count = 0

            if count > 0:
                batch.commit()
            logger.debug("Saved %d feed items (%d removed).", len(feed), len(stale))
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Failed to save feed to Firestore: %s", e)

    def load(self) -> List[FeedItem]:
        """Reads the stored feed ordered by id."""
        if not self.db:
            return []

        try:
            items = [snap.to_dict() for snap in self.collection.stream()]
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Failed to load feed from Firestore: %s", e)
            return []
        items = [i for i in items if isinstance(i, dict) and "id" in i]
        items.sort(key=lambda i: i["id"])
        logger.info("Loaded %d feed items from Firestore.", len(items))
        return items  # type: ignore[return-value]


class JsonFeedStore:
    """Mirrors the feed into a JSON file."""

    def __init__(self, path: str):
        self.path = path

    def save(self, feed: List[FeedItem]) -> None:
        """Atomically rewrites the file with the whole feed."""
        tmp_path = f"{self.path}.tmp"
        try:
            directory = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(directory, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(feed, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error("Failed to save feed to %s: %s", self.path, e)

    def load(self) -> List[FeedItem]:
        """Reads the file; a missing or unreadable file yields an empty feed."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            logger.warning("Could not read feed file %s: %s", self.path, e)
            return []
        if not isinstance(data, list):
            logger.warning("Feed file %s does not hold a list. Ignoring.", self.path)
            return []
        items = [i for i in data if isinstance(i, dict) and "id" in i]
        if len(items) != len(data):
            logger.warning("Skipped %d malformed entries in %s.", len(data) - len(items), self.path)
        return items
