"""
Transcript buffer and flush scheduler.

The TranscriptScheduler accumulates finalized transcript fragments and, every
``cadence`` seconds, drains the buffer in one locked read-and-reset step before
handing the chunk to its handler. Fragments that arrive while a chunk is being
analyzed therefore land in the next cycle.
"""

import logging
import threading
from typing import Callable, NamedTuple, Optional

logger = logging.getLogger(__name__)


class Chunk(NamedTuple):
    """A drained buffer together with the settings snapshot it was taken under."""

    text: str
    language: str
    api_key: str
    offline: bool


ChunkHandler = Callable[[Chunk], None]


class _RepeatingTimer(threading.Thread):
    """Calls ``function`` every ``interval`` seconds until cancelled."""

    def __init__(self, interval: float, function: Callable[[], None]):
        super().__init__(name="insider-agent-timer", daemon=True)
        self.interval = interval
        self.function = function
        self.finished = threading.Event()

    def cancel(self) -> None:
        self.finished.set()

    def run(self) -> None:
        while not self.finished.wait(self.interval):
            try:
                self.function()
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Scheduled flush failed.")


class TranscriptScheduler:
    """
    Owns the transcript buffer and the recurring flush timer.

    Only ``flush`` reads and clears the buffer; ``append_fragment`` only
    appends. The offline flag is last-write-wins for the whole buffered window.
    """

    def __init__(self, on_chunk: ChunkHandler):
        self.on_chunk = on_chunk
        self.cadence: float = 10
        self.language = "pt-BR"
        self.api_key = ""
        self.offline = False
        self._buffer = ""
        self._lock = threading.Lock()
        self._timer: Optional[_RepeatingTimer] = None
        self._timer_lock = threading.Lock()

    @property
    def running(self) -> bool:
        """Whether a flush timer is active."""
        timer = self._timer
        return timer is not None and timer.is_alive()

    def init(self, cadence: float, language: str, api_key: str) -> None:
        """Applies settings and replaces the flush timer with a new one."""
        if cadence <= 0:
            raise ValueError(f"cadence must be positive, got {cadence!r}")
        with self._timer_lock:
            self._cancel_timer()
            with self._lock:
                self.cadence = cadence
                self.language = language
                self.api_key = api_key
            self._timer = _RepeatingTimer(cadence, self.flush)
            self._timer.start()
        logger.info("Scheduler initialized: every %ss, language %s.", cadence, language)

    def _cancel_timer(self) -> None:
        if self._timer is None:
            return
        self._timer.cancel()
        if self._timer is not threading.current_thread():
            self._timer.join()
        self._timer = None

    def stop(self) -> None:
        """Cancels the flush timer. Buffered text stays until the next flush."""
        with self._timer_lock:
            self._cancel_timer()
        logger.info("Scheduler stopped.")

    def append_fragment(self, text: str, offline: bool = False) -> None:
        """Appends a finalized fragment to the buffer."""
        with self._lock:
            self._buffer += " " + text
            self.offline = offline

    def pending(self) -> str:
        """Returns the buffered text without draining it."""
        with self._lock:
            return self._buffer.strip()

    def drain(self) -> Optional[Chunk]:
        """Reads and resets the buffer in one step. Returns None if it was empty."""
        with self._lock:
            trimmed = self._buffer.strip()
            if not trimmed:
                return None
            self._buffer = ""
            return Chunk(trimmed, self.language, self.api_key, self.offline)

    def flush(self) -> bool:
        """
        Drains the buffer and passes the chunk to the handler.

        Returns False when the buffer was empty and nothing was emitted.
        """
        chunk = self.drain()
        if chunk is None:
            logger.debug("Buffer is empty, skipping.")
            return False
        logger.info("Processing buffer: %s...", chunk.text[:100])
        self.on_chunk(chunk)
        return True
