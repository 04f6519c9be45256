"""
Insider Agent
This module wires the transcript scheduler, topic extraction, enrichment and the
feed correlator into one InsiderAgent, and provides a command-line entry point
that reads a live transcript line by line from a file or stdin.
"""

import argparse
import concurrent.futures
import logging
import sys
import threading
from typing import Any, Callable, Dict, Optional, Set, TextIO

from insider_agent import config as config_module
from insider_agent.errors import ConfigError, InsiderAgentError
from insider_agent.feed import FeedCorrelator
from insider_agent.models import FeedItem, Settings
from insider_agent.scheduler import Chunk, TranscriptScheduler
from insider_agent.services.db import FeedStorage, FeedStore, JsonFeedStore
from insider_agent.services.enrichment import RETRIEVAL, Enricher
from insider_agent.services.extractor import TopicExtractor
from insider_agent.services.llm import LLMService
from insider_agent.sources.google_news import GoogleNewsSource
from insider_agent.sources.newsapi import NewsAPISource


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

INTERIM_PREFIX = "~"


class InsiderAgent:
    """
    One running pipeline: fragments → buffer → extraction → feed → enrichment.

    Each flush submits an extraction task to a thread pool; when it finishes, a
    feed item is created and an enrichment task tagged with the item id is
    submitted. Several cycles may be in flight at once.
    """

    def __init__(
        self,
        settings: Settings,
        extractor: TopicExtractor,
        enricher: Enricher,
        feed: FeedCorrelator,
        offline: bool = False,
        on_item: Optional[Callable[[FeedItem], None]] = None,
        max_workers: Optional[int] = None,
    ):
        self.settings = config_module.validate_settings(Settings(**settings))  # type: ignore[typeddict-item]
        self.extractor = extractor
        self.enricher = enricher
        self.feed = feed
        self.offline = offline
        self.on_item = on_item
        self.scheduler = TranscriptScheduler(self._on_chunk)
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="insider-agent"
        )
        self._tasks: Set[concurrent.futures.Future] = set()
        self._tasks_lock = threading.Lock()

    def start(self) -> None:
        """Restores the cached feed and starts the flush timer."""
        loaded = self.feed.load()
        if loaded:
            logger.info("Restored %d feed items.", loaded)
        self._apply_settings()

    def _apply_settings(self) -> None:
        self.scheduler.init(
            self.settings["cadence"], self.settings["language"], self.settings["apiKey"]
        )

    def update_settings(self, **changes: Any) -> Settings:
        """Updates settings and restarts the flush timer with them."""
        unknown = set(changes) - set(Settings.__annotations__)
        if unknown:
            raise ConfigError(f"Unknown settings: {', '.join(sorted(unknown))}")
        updated = Settings(**{**self.settings, **changes})  # type: ignore[typeddict-item]
        self.settings = config_module.validate_settings(updated)
        self._apply_settings()
        return self.settings

    def set_offline(self, offline: bool) -> None:
        """Records the connectivity state used for enrichment."""
        self.offline = offline

    def on_speech(self, text: str, is_final: bool, offline: Optional[bool] = None) -> None:
        """Consumes one speech segment. Only finalized segments are buffered."""
        if not text or not text.strip():
            return
        if not is_final:
            logger.debug("Interim segment: %s", text)
            return
        if offline is not None:
            self.offline = offline
        self.scheduler.append_fragment(text.strip(), self.offline)

    def flush(self) -> bool:
        """Flushes the buffer immediately instead of waiting for the timer."""
        return self.scheduler.flush()

    def _submit(self, fn: Callable[..., Any], *args: Any) -> concurrent.futures.Future:
        future = self._executor.submit(fn, *args)
        with self._tasks_lock:
            self._tasks.add(future)
        future.add_done_callback(self._task_done)
        return future

    def _task_done(self, future: concurrent.futures.Future) -> None:
        with self._tasks_lock:
            self._tasks.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Pipeline task failed: %s", exc, exc_info=exc)

    def _on_chunk(self, chunk: Chunk) -> None:
        self._submit(self._analyze, chunk)

    def _analyze(self, chunk: Chunk) -> FeedItem:
        result = self.extractor.extract(
            chunk.text, chunk.language, chunk.api_key, chunk.offline
        )
        item = self.feed.add_analysis(result)
        self._submit(self._enrich, item["id"], item["topics"], chunk.api_key, self.offline)
        return item

    def _enrich(self, feed_id: int, topics, api_key: str, offline: bool) -> bool:
        enrichment = self.enricher.enrich(feed_id, topics, api_key, offline)
        applied = self.feed.apply_enrichment(enrichment)
        if applied and self.on_item is not None:
            item = self.feed.get(feed_id)
            if item is not None:
                self.on_item(item)
        return applied

    def clear_history(self) -> None:
        """Drops every feed item. Enrichment still in flight is discarded."""
        self.feed.clear()

    def export(self, target: str) -> str:
        """Writes the feed as JSON and returns the file path."""
        return self.feed.export(target)

    def wait(self, timeout: Optional[float] = None) -> None:
        """Blocks until no extraction or enrichment task is in flight."""
        # Extraction tasks submit their enrichment before finishing, so wait in rounds
        while True:
            with self._tasks_lock:
                pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            done, not_done = concurrent.futures.wait(pending, timeout=timeout)
            if not_done and not done:
                logger.warning("%d pipeline tasks still running.", len(not_done))
                return

    def shutdown(self, flush: bool = True) -> None:
        """Stops the timer, optionally runs a last cycle, and waits for all tasks."""
        self.scheduler.stop()
        if flush:
            self.scheduler.flush()
        self.wait()
        self._executor.shutdown(wait=True)


def build_store(config: Dict[str, Any]) -> FeedStorage:
    """Firestore when a GCP project is configured, a local JSON file otherwise."""
    project_id = config_module.gcp_project_id()
    if project_id:
        return FeedStore(project_id)
    return JsonFeedStore(config["feed_file"])


def build_agent(
    config: Dict[str, Any],
    settings: Settings,
    offline: bool = False,
    on_item: Optional[Callable[[FeedItem], None]] = None,
) -> InsiderAgent:
    """Builds an InsiderAgent from configuration values."""

    def llm_factory(api_key: str, timeout: float) -> LLMService:
        return LLMService(api_key, model=config["model"], timeout=timeout)

    language = settings["language"]
    sources = []
    if config["enrichment_strategy"] == RETRIEVAL:
        news_key = config_module.news_api_key()
        if news_key:
            sources.append(NewsAPISource(news_key, language=language.split("-")[0]))
        country = language.split("-")[-1].upper() if "-" in language else "US"
        sources.append(GoogleNewsSource(language=language, country=country))

    return InsiderAgent(
        settings,
        extractor=TopicExtractor(
            detailed=bool(config["detailed"]),
            llm_factory=llm_factory,
            timeout=float(config["extraction_timeout"]),
        ),
        enricher=Enricher(
            strategy=config["enrichment_strategy"],
            sources=sources,
            llm_factory=llm_factory,
            timeout=float(config["enrichment_timeout"]),
        ),
        feed=FeedCorrelator(build_store(config)),
        offline=offline,
        on_item=on_item,
    )


def format_item(item: FeedItem) -> str:
    """Renders a feed item as plain text."""
    lines = [f"[{item['id']}] Topics: {', '.join(item['topics'])}"]
    if item.get("summary"):
        lines.append(f"  Summary: {item['summary']}")
    for intent in item.get("intents") or []:
        lines.append(f"  Intent: {intent}")
    for question in item.get("questions") or []:
        lines.append(f"  Question: {question}")
    for insight in item["insights"]:
        lines.append(f"  * {insight}")
    for news in item["news"]:
        lines.append(f"  - {news['title']} <{news['url']}>")
    return "\n".join(lines)


def feed_transcript(agent: InsiderAgent, stream: TextIO) -> int:
    """
    Feeds transcript lines to the agent. Returns the number of finalized segments.

    Lines starting with ``~`` are interim recognition results and are not buffered.
    """
    count = 0
    for line in stream:
        text = line.strip()
        if not text:
            continue
        if text.startswith(INTERIM_PREFIX):
            agent.on_speech(text[len(INTERIM_PREFIX):].strip(), is_final=False)
            continue
        agent.on_speech(text, is_final=True)
        count += 1
    return count


def parse_args(argv=None) -> argparse.Namespace:
    """Parses command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Insider Agent - live topics, news and insights from a transcript",
        prog="insider-agent",
    )
    parser.add_argument(
        "transcript",
        nargs="?",
        default="-",
        help="Transcript file, one finalized segment per line ('-' for stdin)",
    )
    parser.add_argument(
        "--cadence", type=int, choices=config_module.CADENCE_CHOICES, help="Seconds between analysis cycles"
    )
    parser.add_argument("--language", help="Locale tag passed to the model, e.g. pt-BR")
    parser.add_argument(
        "--strategy", choices=("generative", "retrieval"), help="Enrichment strategy"
    )
    parser.add_argument(
        "--detailed", action="store_true", help="Also extract summary, intents and questions"
    )
    parser.add_argument("--offline", action="store_true", help="Never call remote services")
    parser.add_argument("--export", metavar="PATH", help="Export the feed as JSON when done")
    parser.add_argument("--clear", action="store_true", help="Clear the stored feed history first")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main execution entry point."""
    args = parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = config_module.load_config()
        if args.strategy:
            config["enrichment_strategy"] = args.strategy
        if args.detailed:
            config["detailed"] = True
        settings = config_module.build_settings(
            config, {"cadence": args.cadence, "language": args.language}
        )
    except InsiderAgentError as e:
        logger.error("Configuration error: %s", e)
        return 2

    if not settings["apiKey"] and not args.offline:
        logger.warning("GEMINI_KEY not set. Using local analysis only.")

    try:
        stream = sys.stdin if args.transcript == "-" else open(args.transcript, "r", encoding="utf-8")
    except OSError as e:
        logger.error("Transcript source not available: %s", e)
        return 1

    agent = build_agent(
        config, settings, offline=args.offline, on_item=lambda item: print(format_item(item), flush=True)
    )
    agent.start()
    if args.clear:
        agent.clear_history()

    try:
        segments = feed_transcript(agent, stream)
        logger.info("Transcript finished after %d segments.", segments)
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        if stream is not sys.stdin:
            stream.close()
        agent.shutdown(flush=True)

    if args.export:
        try:
            agent.export(args.export)
        except OSError as e:
            logger.error("Could not export feed: %s", e)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
