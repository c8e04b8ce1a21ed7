"""
Single-file mover with rename retries and a copy+delete fallback.

A move runs as a small state machine:

    RENAME_ATTEMPT --ok--> DONE
    RENAME_ATTEMPT --EXDEV or attempts exhausted--> COPY_FALLBACK
    COPY_FALLBACK --copied--> DONE (a failed source delete only warns)
    COPY_FALLBACK --open/create/copy error--> FAILED

The fallback creates the destination exclusively, so an existing file is
never truncated.

On failure the source is left where it was; on success exactly one copy of
the bytes exists at the destination with the source's permission bits.
"""

import errno
import logging
import os
import shutil
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Set

from ..config import settings
from ..core.log_sink import LoggingLogSink, LogSink
from ..core.types import MoveOutcome, MoveStatus
from ..shared.fs_utils import split_name, timestamped_name

logger = logging.getLogger(__name__)


class MoveState(str, Enum):
    """States of a single move."""

    RENAME_ATTEMPT = "rename_attempt"
    COPY_FALLBACK = "copy_fallback"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = (MoveState.DONE, MoveState.FAILED)


@dataclass
class MoveAttempt:
    """Mutable progress of one move through the state machine."""

    source: Path
    destination: Path
    state: MoveState = MoveState.RENAME_ATTEMPT
    attempt: int = 0
    error: Optional[str] = None
    warning: Optional[str] = None


def is_cross_device(error: OSError) -> bool:
    """Check whether a rename failed because it crossed filesystems."""
    return error.errno == errno.EXDEV


def resolve_destination(
    source: Path,
    destination_dir: Path,
    taken: Iterable[Path] = (),
    when: Optional[datetime] = None,
) -> Path:
    """
    Get the path a source file will be written to.

    If a file already exists at destination_dir/name (or the name is in
    ``taken``), a timestamp is inserted between the stem and the extension.
    When that name is in use as well, a counter is appended to it:
    report_20240305_143022.txt, report_20240305_143022_1.txt, ...

    Args:
        source: File being moved
        destination_dir: Directory it is moved into
        taken: Destinations already claimed by moves in progress
        when: Time used for the timestamp (defaults to now)

    Returns:
        A destination path not present on disk or in ``taken``
    """
    taken = set(taken)

    def in_use(path: Path) -> bool:
        return path in taken or os.path.lexists(path)

    destination = destination_dir / source.name
    if not in_use(destination):
        return destination

    stamped = timestamped_name(source.name, when or datetime.now())
    destination = destination_dir / stamped
    counter = 0
    while in_use(destination):
        counter += 1
        stem, suffix = split_name(stamped)
        destination = destination_dir / f"{stem}_{counter}{suffix}"
    return destination


class FileMover:
    """Move files into destination directories."""

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        log_sink: Optional[LogSink] = None,
    ):
        """
        Initialize the mover.

        Args:
            max_attempts: Rename attempts before falling back to copy+delete
            backoff_seconds: Sleep between rename attempts
            log_sink: Receiver for warnings
        """
        self.max_attempts = max_attempts or settings.rename_attempts
        self.backoff_seconds = (
            backoff_seconds
            if backoff_seconds is not None
            else settings.rename_backoff_seconds
        )
        self.log_sink = log_sink or LoggingLogSink()
        # Destinations chosen by moves still in flight on other threads
        self._claimed: Set[Path] = set()
        self._claimed_lock = threading.Lock()

    def move(self, source_path: Path, destination_dir: Path) -> MoveOutcome:
        """
        Move one file into a directory.

        Never raises for per-file problems; they come back as a failed outcome.

        Args:
            source_path: File to move
            destination_dir: Directory to move it into (created if missing)

        Returns:
            Outcome with the final destination path
        """
        source = Path(source_path)
        destination_dir = Path(destination_dir)

        try:
            destination_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return MoveOutcome(
                source_path=source,
                destination_dir=destination_dir,
                status=MoveStatus.FAILED,
                error=f"Failed to create directory {destination_dir}: {e}",
            )

        with self._claimed_lock:
            destination = resolve_destination(source, destination_dir, self._claimed)
            self._claimed.add(destination)

        move = MoveAttempt(source=source, destination=destination)
        try:
            self.run(move)
        finally:
            with self._claimed_lock:
                self._claimed.discard(destination)

        if move.state == MoveState.DONE:
            return MoveOutcome(
                source_path=source,
                destination_dir=destination_dir,
                destination_path=move.destination,
                status=MoveStatus.MOVED,
                warning=move.warning,
            )
        return MoveOutcome(
            source_path=source,
            destination_dir=destination_dir,
            destination_path=move.destination,
            status=MoveStatus.FAILED,
            error=move.error,
        )

    def run(self, move: MoveAttempt) -> MoveAttempt:
        """Drive a move until it reaches DONE or FAILED."""
        while move.state not in TERMINAL_STATES:
            if move.state == MoveState.RENAME_ATTEMPT:
                move.state = self.try_rename(move)
            elif move.state == MoveState.COPY_FALLBACK:
                move.state = self.copy_then_delete(move)
        return move

    def try_rename(self, move: MoveAttempt) -> MoveState:
        """
        Make one rename attempt.

        Returns:
            Next state: DONE, RENAME_ATTEMPT (retry) or COPY_FALLBACK
        """
        move.attempt += 1
        try:
            os.rename(move.source, move.destination)
            move.error = None
            return MoveState.DONE
        except OSError as e:
            move.error = str(e)
            if is_cross_device(e):
                logger.debug(f"Cross-device rename for {move.source}, copying")
                return MoveState.COPY_FALLBACK
            if move.attempt >= self.max_attempts:
                logger.debug(
                    f"Rename failed {move.attempt} times for {move.source}, copying"
                )
                return MoveState.COPY_FALLBACK

        time.sleep(self.backoff_seconds)
        return MoveState.RENAME_ATTEMPT

    def copy_then_delete(self, move: MoveAttempt) -> MoveState:
        """
        Copy the source to the destination, sync it, then delete the source.

        Returns:
            DONE when the copy is safely on disk, FAILED otherwise
        """
        created = False
        try:
            with open(move.source, "rb") as src:
                with open(move.destination, "xb") as dst:
                    created = True
                    shutil.copymode(move.source, move.destination)
                    shutil.copyfileobj(src, dst)
                    dst.flush()
                    os.fsync(dst.fileno())
        except OSError as e:
            move.error = f"Copy failed: {e}"
            if created:
                self._remove_partial(move.destination)
            return MoveState.FAILED

        try:
            os.remove(move.source)
        except OSError as e:
            move.warning = f"Copied {move.source} but could not delete it: {e}"
            logger.warning(move.warning)
            self.log_sink.accept(f"Warning: {move.warning}")

        move.error = None
        return MoveState.DONE

    def _remove_partial(self, path: Path) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Could not remove partial copy {path}: {e}")
