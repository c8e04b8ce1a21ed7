"""
Pytest configuration and fixtures for file_sorter tests.
"""

import os
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import pytest

from file_sorter.core.log_sink import LogSink


class CollectingLogSink(LogSink):
    """Sink that keeps every message, for assertions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.messages: List[str] = []

    def accept(self, text: str) -> None:
        with self._lock:
            self.messages.append(text)

    @property
    def text(self) -> str:
        with self._lock:
            return "\n".join(self.messages)


def make_file(
    path: Path, content: str = "content", modified: Optional[datetime] = None
) -> Path:
    """Create a file (and its parents), optionally with a fixed mtime."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    if modified is not None:
        timestamp = modified.timestamp()
        os.utime(path, (timestamp, timestamp))
    return path


@pytest.fixture(name="make_file")
def make_file_fixture():
    """Helper creating files with optional mtime."""
    return make_file


@pytest.fixture
def log_sink() -> CollectingLogSink:
    """Collecting log sink."""
    return CollectingLogSink()


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    """
    Create a source directory with a few files and a subdirectory.

    source/
        report.txt
        photo.JPG
        notes
        nested/deep/data.csv
    """
    source = tmp_path / "source"
    make_file(source / "report.txt", "report")
    make_file(source / "photo.JPG", "photo")
    make_file(source / "notes", "no extension")
    make_file(source / "nested" / "deep" / "data.csv", "a,b\n1,2\n")
    return source
