"""
Dispatcher feeding scanned files through the worker pool.

Each worker takes one file at a time through stat, extension filter,
classification and move; a collector on the calling thread folds the
outcomes into a summary.
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from ..config import Settings, settings as default_settings
from ..core.log_sink import LoggingLogSink, LogSink
from ..core.types import (
    MoveOutcome,
    MoveStatus,
    OrganizeConfig,
    ProcessSummary,
    get_extension,
)
from .mover import FileMover
from .strategy import FileInfo, destination_for
from .worker_pool import WorkerPool

logger = logging.getLogger(__name__)

SKIP_NOT_SELECTED = "extension not selected"
SKIP_CANCELLED = "cancelled"


class OrganizeError(Exception):
    """Run-level failure; no files were attempted."""


def worker_count(
    file_count: int,
    cpu_count: Optional[int] = None,
    config: Optional[Settings] = None,
) -> int:
    """
    Decide how many workers to start.

    Small inputs get a small fixed pool; larger inputs scale with the CPU
    count up to a ceiling.

    Args:
        file_count: Number of files to process
        cpu_count: Available parallelism (defaults to os.cpu_count())
        config: Settings providing the thresholds

    Returns:
        Number of worker threads
    """
    config = config or default_settings
    if file_count < config.small_input_threshold:
        return config.small_worker_count

    cpus = cpu_count or os.cpu_count() or config.small_worker_count
    return max(1, min(cpus, config.max_workers))


class Dispatcher:
    """Organize a set of files with a bounded worker pool."""

    def __init__(
        self,
        mover: Optional[FileMover] = None,
        log_sink: Optional[LogSink] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            mover: Mover used by the workers
            log_sink: Receiver for per-file and summary lines
            settings: Pool sizing and log batching settings
        """
        self.settings = settings or default_settings
        self.log_sink = log_sink or LoggingLogSink()
        self.mover = mover or FileMover(
            max_attempts=self.settings.rename_attempts,
            backoff_seconds=self.settings.rename_backoff_seconds,
            log_sink=self.log_sink,
        )
        self._pool: Optional[WorkerPool] = None
        self._cancel_requested = False

    def cancel(self) -> None:
        """
        Ask a running process() to stop.

        Files already being moved finish; the rest are reported as skipped.
        """
        self._cancel_requested = True
        if self._pool is not None:
            self._pool.cancel()

    def process(self, files: Iterable[Path], config: OrganizeConfig) -> ProcessSummary:
        """
        Classify and move every file.

        Args:
            files: Files to organize (typically ScanResult.files)
            config: Rule, filter and target directory

        Returns:
            Summary with checked and moved counts

        Raises:
            OrganizeError: If the target directory cannot be created
        """
        paths = sorted({Path(f) for f in files})
        summary = ProcessSummary()

        try:
            Path(config.target_dir).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OrganizeError(
                f"Cannot create target directory {config.target_dir}: {e}"
            ) from e

        num_workers = worker_count(len(paths), config=self.settings)
        self.log_sink.accept(f"Processing {len(paths)} files")
        self.log_sink.accept(f"Using {num_workers} workers")
        self.log_sink.accept(f"Rule: {config.rule.value}")
        self.log_sink.accept(
            f"Selected extensions: {', '.join(sorted(config.extension_filter)) or '(none)'}"
        )
        logger.info(f"Organizing {len(paths)} files with {num_workers} workers")

        self._pool = WorkerPool(
            num_workers,
            handler=lambda path, worker_id: self.process_file(path, config, worker_id),
            on_error=self._unexpected_error,
            on_cancel=self._cancelled,
            name="mover",
        )
        if self._cancel_requested:
            self._pool.cancel()

        batch: List[str] = []
        try:
            for outcome in self._pool.run(paths):
                summary.record(outcome)
                line = format_outcome(outcome)
                if outcome.status == MoveStatus.FAILED or outcome.warning:
                    batch.append(line)
                    self._flush(batch)
                    batch = []
                else:
                    batch.append(line)
                    if len(batch) >= self.settings.result_log_batch_size:
                        self._flush(batch)
                        batch = []
            self._flush(batch)
            summary.cancelled = self._pool.cancelled
        finally:
            self._pool = None
            self._cancel_requested = False

        finished = datetime.now().strftime("%H:%M:%S")
        self.log_sink.accept(
            f"{finished} - Finished: checked {summary.checked} files, "
            f"moved {summary.moved} files"
        )
        logger.info(
            f"Organize complete: {summary.moved} moved, {summary.skipped} skipped, "
            f"{summary.failed} failed"
        )
        return summary

    def process_file(
        self, path: Path, config: OrganizeConfig, worker_id: Optional[int] = None
    ) -> MoveOutcome:
        """
        Take one file through stat, filter, classify and move.

        Args:
            path: File to process
            config: Organize configuration
            worker_id: Worker handling the file

        Returns:
            Outcome for the file
        """
        try:
            info = FileInfo.from_path(path)
        except OSError as e:
            return MoveOutcome(
                source_path=path,
                status=MoveStatus.FAILED,
                error=f"Failed to read file info: {e}",
                worker_id=worker_id,
            )

        if get_extension(info.name) not in config.extension_filter:
            return MoveOutcome(
                source_path=path,
                status=MoveStatus.SKIPPED,
                reason=SKIP_NOT_SELECTED,
                worker_id=worker_id,
            )

        destination_dir = Path(config.target_dir) / destination_for(info, config)
        outcome = self.mover.move(path, destination_dir)
        outcome.worker_id = worker_id
        return outcome

    def _flush(self, lines: List[str]) -> None:
        if lines:
            self.log_sink.accept("\n".join(lines))

    @staticmethod
    def _unexpected_error(path: Path, worker_id: int, error: Exception) -> MoveOutcome:
        return MoveOutcome(
            source_path=path,
            status=MoveStatus.FAILED,
            error=f"Unexpected error: {error}",
            worker_id=worker_id,
        )

    @staticmethod
    def _cancelled(path: Path, worker_id: int) -> MoveOutcome:
        return MoveOutcome(
            source_path=path,
            status=MoveStatus.SKIPPED,
            reason=SKIP_CANCELLED,
            worker_id=worker_id,
        )


def format_outcome(outcome: MoveOutcome) -> str:
    """Render an outcome as a single log line."""
    prefix = f"[worker {outcome.worker_id}] " if outcome.worker_id else ""
    name = outcome.source_path.name

    if outcome.status == MoveStatus.MOVED:
        line = f"{prefix}Moved: {name} -> {outcome.destination_dir}"
        if outcome.warning:
            line += f" (warning: {outcome.warning})"
        return line
    if outcome.status == MoveStatus.SKIPPED:
        return f"{prefix}Skipped ({outcome.reason}): {outcome.source_path}"
    return f"{prefix}Failed to move {outcome.source_path}: {outcome.error}"
