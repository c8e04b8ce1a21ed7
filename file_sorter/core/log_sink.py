"""
Best-effort delivery of user-visible progress messages.

The pipeline never waits on logging: a sink must accept a message
immediately or drop it.
"""

import logging
import queue
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional

from ..config import settings

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "[log truncated, earlier lines dropped]\n"


class LogSink(ABC):
    """Receiver for human-readable progress and error lines."""

    @abstractmethod
    def accept(self, text: str) -> None:
        """Take a message without blocking the caller."""


class LoggingLogSink(LogSink):
    """Forward messages to the logging module."""

    def __init__(self, target: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.target = target or logger
        self.level = level

    def accept(self, text: str) -> None:
        self.target.log(self.level, text.rstrip("\n"))


class QueueLogSink(LogSink):
    """
    Bounded-queue sink with a background drainer.

    Messages go into a fixed-size queue with a non-blocking put; when the
    queue is full the message is counted as dropped. A drainer thread hands
    batches to ``writer`` either when ``batch_size`` messages have piled up
    or every ``flush_interval`` seconds, and keeps a trimmed history that can
    be saved to a file.
    """

    def __init__(
        self,
        writer: Optional[Callable[[str], None]] = None,
        maxsize: Optional[int] = None,
        batch_size: Optional[int] = None,
        flush_interval: Optional[float] = None,
        history_chars: Optional[int] = None,
    ):
        """
        Initialize the sink.

        Args:
            writer: Callback receiving a block of newline-terminated lines
            maxsize: Queue capacity before messages are dropped
            batch_size: Messages accumulated before an immediate flush
            flush_interval: Seconds between periodic flushes
            history_chars: Characters of history kept for save()
        """
        self.writer = writer
        self.batch_size = batch_size or settings.log_batch_size
        self.flush_interval = (
            flush_interval if flush_interval is not None else settings.log_flush_interval
        )
        self.history_chars = history_chars or settings.log_history_chars
        self._queue: "queue.Queue[Optional[str]]" = queue.Queue(
            maxsize=maxsize or settings.log_queue_size
        )
        self._history: List[str] = []
        self._history_size = 0
        self._history_lock = threading.Lock()
        self._dropped = 0
        self._dropped_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def dropped(self) -> int:
        """Number of messages discarded because the queue was full."""
        with self._dropped_lock:
            return self._dropped

    def accept(self, text: str) -> None:
        if not text.endswith("\n"):
            text += "\n"
        try:
            self._queue.put_nowait(text)
        except queue.Full:
            with self._dropped_lock:
                self._dropped += 1
            logger.debug("Log queue full, dropping message")

    def start(self) -> "QueueLogSink":
        """Start the drainer thread."""
        if self._thread is None:
            self._thread = threading.Thread(
                target=self._drain, name="log-sink", daemon=True
            )
            self._thread.start()
        return self

    def close(self) -> None:
        """Flush everything still queued and stop the drainer."""
        if self._thread is None:
            self._flush(self._pop_pending())
            return
        # The stop marker must get through even when the queue is full
        self._queue.put(None)
        self._thread.join()
        self._thread = None

    def __enter__(self) -> "QueueLogSink":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def history(self) -> str:
        """Return the retained log text."""
        with self._history_lock:
            return "".join(self._history)

    def clear(self) -> None:
        """Forget the retained log text."""
        with self._history_lock:
            self._history = []
            self._history_size = 0

    def save(self, path: Path) -> Path:
        """
        Write the retained log text to a file.

        Args:
            path: Destination file; parent directories are created

        Returns:
            The path written
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.history(), encoding="utf-8")
        logger.info(f"Saved log to {path}")
        return path

    def _drain(self) -> None:
        buffer: List[str] = []
        last_flush = time.monotonic()

        while True:
            timeout = max(0.0, self.flush_interval - (time.monotonic() - last_flush))
            try:
                message = self._queue.get(timeout=timeout)
            except queue.Empty:
                message = ""

            if message is None:
                buffer.extend(self._pop_pending())
                self._flush(buffer)
                return

            if message:
                buffer.append(message)

            due = time.monotonic() - last_flush >= self.flush_interval
            if len(buffer) >= self.batch_size or (buffer and due):
                self._flush(buffer)
                buffer = []
            if due:
                last_flush = time.monotonic()

    def _pop_pending(self) -> List[str]:
        pending = []
        while True:
            try:
                message = self._queue.get_nowait()
            except queue.Empty:
                return pending
            if message is not None:
                pending.append(message)

    def _flush(self, messages: List[str]) -> None:
        if not messages:
            return
        block = "".join(messages)
        self._remember(block)
        if self.writer is not None:
            try:
                self.writer(block)
            except Exception as e:
                logger.error(f"Log writer failed: {e}")

    def _remember(self, block: str) -> None:
        with self._history_lock:
            self._history.append(block)
            self._history_size += len(block)
            if self._history_size <= self.history_chars:
                return
            # Keep the newest half once the limit is crossed
            text = "".join(self._history)[-(self.history_chars // 2) :]
            self._history = [TRUNCATION_MARKER, text]
            self._history_size = len(TRUNCATION_MARKER) + len(text)
