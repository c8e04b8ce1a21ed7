"""
Organization module: classifying files and moving them into place.

Files are classified by modification date or extension, then moved by a
bounded worker pool with rename retries and a copy+delete fallback for
cross-filesystem moves.
"""

from .dispatcher import Dispatcher, OrganizeError, format_outcome, worker_count
from .mover import FileMover, MoveAttempt, MoveState, resolve_destination
from .strategy import FileInfo, destination_for, format_date
from .worker_pool import WorkerPool

__all__ = [
    "Dispatcher",
    "FileInfo",
    "FileMover",
    "MoveAttempt",
    "MoveState",
    "OrganizeError",
    "WorkerPool",
    "destination_for",
    "format_date",
    "format_outcome",
    "resolve_destination",
    "worker_count",
]
