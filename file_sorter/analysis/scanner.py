"""
Directory scanner.

Walks every source directory on its own thread and merges the discovered
files and extensions into one snapshot.
"""

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional, Set

from ..core.log_sink import LoggingLogSink, LogSink
from ..core.types import ScanResult, get_extension

logger = logging.getLogger(__name__)


def normalize_sources(sources: Iterable[Path]) -> List[Path]:
    """
    Make source paths absolute and drop duplicates, keeping order.

    Args:
        sources: Source directories as given by the caller

    Returns:
        Ordered list of unique absolute paths
    """
    seen: Set[Path] = set()
    result = []
    for source in sources:
        path = Path(os.path.abspath(os.path.expanduser(str(source))))
        if path not in seen:
            seen.add(path)
            result.append(path)
    return result


class _ScanAccumulator:
    """Lock-guarded collection shared by the walker threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.files: Set[Path] = set()
        self.extensions: Set[str] = set()
        self.warnings: List[str] = []

    def add_files(self, paths: List[Path]) -> None:
        with self._lock:
            for path in paths:
                self.files.add(path)
                extension = get_extension(path.name)
                if extension:
                    self.extensions.add(extension)

    def add_warning(self, message: str) -> None:
        with self._lock:
            self.warnings.append(message)

    def snapshot(self) -> ScanResult:
        with self._lock:
            return ScanResult(
                files=frozenset(self.files),
                extensions=frozenset(self.extensions),
                warnings=tuple(self.warnings),
            )


class Scanner:
    """Discovers files under one or more source directories."""

    def __init__(self, log_sink: Optional[LogSink] = None, batch_size: int = 500):
        """
        Initialize the scanner.

        Args:
            log_sink: Receiver for progress and warning lines
            batch_size: Files collected per walker before merging under the lock
        """
        self.log_sink = log_sink or LoggingLogSink()
        self.batch_size = batch_size

    def scan(self, sources: Iterable[Path]) -> ScanResult:
        """
        Scan source directories concurrently.

        A directory that cannot be read is reported as a warning and skipped;
        it never aborts the scan.

        Args:
            sources: Source directories

        Returns:
            Snapshot of all files and extensions found
        """
        directories = normalize_sources(sources)
        accumulator = _ScanAccumulator()

        if not directories:
            self.log_sink.accept("No source directories selected")
            return accumulator.snapshot()

        self.log_sink.accept("Starting scan...")
        self.log_sink.accept(f"{len(directories)} source directories selected")
        logger.info(f"Scanning {len(directories)} directories")

        with ThreadPoolExecutor(
            max_workers=len(directories), thread_name_prefix="scan"
        ) as executor:
            futures = [
                executor.submit(self._walk, directory, accumulator)
                for directory in directories
            ]
            for future, directory in zip(futures, directories):
                try:
                    future.result()
                except Exception as e:
                    message = f"Error scanning {directory}: {e}"
                    accumulator.add_warning(message)
                    self.log_sink.accept(message)

        result = accumulator.snapshot()
        self.log_sink.accept(f"Scan complete, found {len(result.files)} files")
        self.log_sink.accept(f"Found {len(result.extensions)} distinct extensions")
        logger.info(
            f"Scan complete: {len(result.files)} files, "
            f"{len(result.extensions)} extensions, {len(result.warnings)} warnings"
        )
        return result

    def _walk(self, root: Path, accumulator: _ScanAccumulator) -> None:
        """
        Walk one source tree, feeding files into the accumulator.

        Args:
            root: Absolute source directory
            accumulator: Shared scan state
        """
        self.log_sink.accept(f"Scanning: {root}")

        batch: List[Path] = []
        pending = [str(root)]

        while pending:
            current = pending.pop()
            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                self._warn(accumulator, f"Error scanning {current}: {e}")
                continue

            for entry in entries:
                try:
                    if entry.is_dir(follow_symlinks=False):
                        pending.append(entry.path)
                    elif entry.is_file():
                        batch.append(Path(entry.path))
                    elif entry.is_symlink() and not os.path.exists(entry.path):
                        self._warn(accumulator, f"Broken symlink skipped: {entry.path}")
                except OSError as e:
                    self._warn(accumulator, f"Error scanning {entry.path}: {e}")
                    continue

                if len(batch) >= self.batch_size:
                    accumulator.add_files(batch)
                    batch = []

        if batch:
            accumulator.add_files(batch)

    def _warn(self, accumulator: _ScanAccumulator, message: str) -> None:
        logger.warning(message)
        accumulator.add_warning(message)
        self.log_sink.accept(message)
