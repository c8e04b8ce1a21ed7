"""Tests for the single-file mover."""

import errno
import os
import re
import shutil
import stat
from datetime import datetime
from pathlib import Path

import pytest

from file_sorter.core.types import MoveStatus
from file_sorter.organization import mover as mover_module
from file_sorter.organization.mover import (
    FileMover,
    MoveAttempt,
    MoveState,
    is_cross_device,
    resolve_destination,
)


@pytest.fixture
def mover(log_sink):
    """Mover without backoff delay."""
    return FileMover(max_attempts=3, backoff_seconds=0, log_sink=log_sink)


@pytest.fixture
def source_file(tmp_path, make_file):
    """A file with recognisable content and restricted permissions."""
    path = make_file(tmp_path / "source" / "report.txt", "quarterly numbers")
    os.chmod(path, 0o640)
    return path


def _rename_failing_with(code, times=None):
    """Build an os.rename replacement failing with the given errno."""
    real_rename = os.rename
    calls = []

    def rename(src, dst):
        calls.append((src, dst))
        if times is None or len(calls) <= times:
            raise OSError(code, os.strerror(code))
        return real_rename(src, dst)

    rename.calls = calls
    return rename


class _FrozenDateTime(datetime):
    """datetime whose now() is pinned to a single second."""

    @classmethod
    def now(cls, tz=None):
        return cls(2024, 3, 5, 14, 30, 22)


class TestRename:
    """Test the same-filesystem path."""

    def test_move_into_new_directory(self, mover, source_file, tmp_path):
        """Test destination directory is created and the file moved."""
        destination_dir = tmp_path / "target" / ".txt"

        outcome = mover.move(source_file, destination_dir)

        assert outcome.status == MoveStatus.MOVED
        assert outcome.destination_path == destination_dir / "report.txt"
        assert not source_file.exists()
        assert outcome.destination_path.read_text() == "quarterly numbers"
        assert stat.S_IMODE(outcome.destination_path.stat().st_mode) == 0o640

    def test_transient_failure_is_retried(self, mover, source_file, tmp_path, monkeypatch):
        """Test a rename failing twice succeeds on the third attempt."""
        rename = _rename_failing_with(errno.EBUSY, times=2)
        monkeypatch.setattr(os, "rename", rename)

        outcome = mover.move(source_file, tmp_path / "target")

        assert outcome.status == MoveStatus.MOVED
        assert outcome.error is None
        assert len(rename.calls) == 3
        assert not source_file.exists()


class TestCollision:
    """Test name collision handling."""

    def test_existing_file_gets_timestamp(self, mover, source_file, tmp_path, make_file):
        """Test the incoming file is renamed and the existing one untouched."""
        destination_dir = tmp_path / "target"
        existing = make_file(destination_dir / "report.txt", "older report")

        outcome = mover.move(source_file, destination_dir)

        assert outcome.status == MoveStatus.MOVED
        assert outcome.destination_path != existing
        assert re.fullmatch(r"report_\d{8}_\d{6}\.txt", outcome.destination_path.name)
        assert outcome.destination_path.read_text() == "quarterly numbers"
        assert existing.read_text() == "older report"

    def test_resolve_without_collision(self, tmp_path):
        """Test the plain name is used when free."""
        assert resolve_destination(Path("/src/a.txt"), tmp_path) == tmp_path / "a.txt"

    def test_resolve_without_extension(self, tmp_path, make_file):
        """Test the timestamp is appended to names without an extension."""
        make_file(tmp_path / "notes")

        resolved = resolve_destination(Path("/src/notes"), tmp_path)

        assert re.fullmatch(r"notes_\d{8}_\d{6}", resolved.name)

    def test_timestamped_name_taken_gets_counter(self, tmp_path, make_file):
        """Test a counter is added when the timestamped name exists too."""
        when = datetime(2024, 3, 5, 14, 30, 22)
        make_file(tmp_path / "report.txt")
        make_file(tmp_path / "report_20240305_143022.txt")
        make_file(tmp_path / "report_20240305_143022_1.txt")

        resolved = resolve_destination(Path("/src/report.txt"), tmp_path, when=when)

        assert resolved == tmp_path / "report_20240305_143022_2.txt"

    def test_claimed_names_are_avoided(self, tmp_path):
        """Test destinations claimed by in-flight moves count as taken."""
        when = datetime(2024, 3, 5, 14, 30, 22)
        taken = {tmp_path / "a.txt", tmp_path / "a_20240305_143022.txt"}

        resolved = resolve_destination(Path("/src/a.txt"), tmp_path, taken, when=when)

        assert resolved == tmp_path / "a_20240305_143022_1.txt"

    def test_same_second_collisions_keep_every_file(
        self, mover, tmp_path, make_file, monkeypatch
    ):
        """Test three same-named files moved within one second all survive."""
        monkeypatch.setattr(mover_module, "datetime", _FrozenDateTime)
        destination_dir = tmp_path / "target"
        sources = [
            make_file(tmp_path / f"src{i}" / "README.md", f"content {i}") for i in range(3)
        ]

        outcomes = [mover.move(source, destination_dir) for source in sources]

        assert all(outcome.status == MoveStatus.MOVED for outcome in outcomes)
        assert sorted(p.name for p in destination_dir.iterdir()) == [
            "README.md",
            "README_20240305_143022.md",
            "README_20240305_143022_1.md",
        ]
        assert sorted(p.read_text() for p in destination_dir.iterdir()) == [
            "content 0",
            "content 1",
            "content 2",
        ]

    def test_copy_fallback_never_overwrites(self, mover, source_file, tmp_path, make_file):
        """Test the copy step fails instead of truncating an existing file."""
        existing = make_file(tmp_path / "target" / "report.txt", "older report")
        move = MoveAttempt(
            source=source_file, destination=existing, state=MoveState.COPY_FALLBACK
        )

        assert mover.copy_then_delete(move) == MoveState.FAILED
        assert "Copy failed" in move.error
        assert existing.read_text() == "older report"
        assert source_file.read_text() == "quarterly numbers"


class TestCopyFallback:
    """Test the copy+delete fallback."""

    def test_cross_device_skips_retries(self, mover, source_file, tmp_path, monkeypatch):
        """Test EXDEV goes straight to copy after one rename attempt."""
        rename = _rename_failing_with(errno.EXDEV)
        monkeypatch.setattr(os, "rename", rename)

        outcome = mover.move(source_file, tmp_path / "target")

        assert len(rename.calls) == 1
        assert outcome.status == MoveStatus.MOVED
        assert not source_file.exists()
        assert outcome.destination_path.read_text() == "quarterly numbers"
        assert stat.S_IMODE(outcome.destination_path.stat().st_mode) == 0o640

    def test_exhausted_retries_fall_back(self, mover, source_file, tmp_path, monkeypatch):
        """Test persistent rename failures end in copy+delete."""
        rename = _rename_failing_with(errno.EBUSY)
        monkeypatch.setattr(os, "rename", rename)

        outcome = mover.move(source_file, tmp_path / "target")

        assert len(rename.calls) == 3
        assert outcome.status == MoveStatus.MOVED
        assert not source_file.exists()

    def test_copy_failure_cleans_up(self, mover, source_file, tmp_path, monkeypatch):
        """Test a failed copy removes the partial file and keeps the source."""
        monkeypatch.setattr(os, "rename", _rename_failing_with(errno.EXDEV))

        def broken_copy(src, dst, *args, **kwargs):
            dst.write(b"partial")
            raise OSError(errno.ENOSPC, "No space left on device")

        monkeypatch.setattr(shutil, "copyfileobj", broken_copy)
        destination_dir = tmp_path / "target"

        outcome = mover.move(source_file, destination_dir)

        assert outcome.status == MoveStatus.FAILED
        assert "No space left" in outcome.error
        assert source_file.read_text() == "quarterly numbers"
        assert list(destination_dir.iterdir()) == []

    def test_missing_source_fails(self, mover, tmp_path):
        """Test a vanished source is a failure, not an exception."""
        outcome = mover.move(tmp_path / "vanished.txt", tmp_path / "target")

        assert outcome.status == MoveStatus.FAILED
        assert outcome.error.startswith("Copy failed")
        assert not (tmp_path / "target" / "vanished.txt").exists()

    def test_delete_failure_is_success_with_warning(
        self, mover, source_file, tmp_path, monkeypatch, log_sink
    ):
        """Test copy succeeded but source removal failed."""
        monkeypatch.setattr(os, "rename", _rename_failing_with(errno.EXDEV))
        real_remove = os.remove

        def remove(path):
            if Path(path) == source_file:
                raise PermissionError(errno.EACCES, "Permission denied")
            return real_remove(path)

        monkeypatch.setattr(os, "remove", remove)

        outcome = mover.move(source_file, tmp_path / "target")

        assert outcome.status == MoveStatus.MOVED
        assert outcome.warning is not None
        assert "could not delete" in outcome.warning
        assert source_file.exists()
        assert outcome.destination_path.read_text() == "quarterly numbers"
        assert any(message.startswith("Warning:") for message in log_sink.messages)


class TestDirectoryCreation:
    """Test destination directory failures."""

    def test_unwritable_destination_fails(self, mover, source_file, tmp_path, make_file):
        """Test a file standing where the directory should be."""
        blocker = make_file(tmp_path / "target", "not a directory")

        outcome = mover.move(source_file, blocker / "sub")

        assert outcome.status == MoveStatus.FAILED
        assert "Failed to create directory" in outcome.error
        assert source_file.exists()


class TestStateTransitions:
    """Test individual state machine steps."""

    def test_rename_success_goes_to_done(self, mover, source_file, tmp_path):
        """Test one successful rename."""
        move = MoveAttempt(source=source_file, destination=tmp_path / "moved.txt")

        assert mover.try_rename(move) == MoveState.DONE
        assert move.attempt == 1

    def test_rename_failure_retries(self, mover, source_file, tmp_path, monkeypatch):
        """Test a non-EXDEV failure stays in RENAME_ATTEMPT until the budget runs out."""
        monkeypatch.setattr(os, "rename", _rename_failing_with(errno.EBUSY))
        move = MoveAttempt(source=source_file, destination=tmp_path / "moved.txt")

        assert mover.try_rename(move) == MoveState.RENAME_ATTEMPT
        assert mover.try_rename(move) == MoveState.RENAME_ATTEMPT
        assert mover.try_rename(move) == MoveState.COPY_FALLBACK

    def test_cross_device_detection(self):
        """Test EXDEV is recognised."""
        assert is_cross_device(OSError(errno.EXDEV, "Invalid cross-device link"))
        assert not is_cross_device(OSError(errno.EACCES, "Permission denied"))

    def test_copy_step(self, mover, source_file, tmp_path):
        """Test copy_then_delete on its own."""
        move = MoveAttempt(
            source=source_file,
            destination=tmp_path / "copy.txt",
            state=MoveState.COPY_FALLBACK,
        )

        assert mover.copy_then_delete(move) == MoveState.DONE
        assert (tmp_path / "copy.txt").read_text() == "quarterly numbers"
        assert not source_file.exists()

    def test_run_stops_at_terminal_state(self, mover, source_file, tmp_path):
        """Test run() leaves a finished move alone."""
        move = MoveAttempt(
            source=source_file, destination=tmp_path / "x.txt", state=MoveState.FAILED
        )

        assert mover.run(move).state == MoveState.FAILED
        assert source_file.exists()
