"""
Shared utilities for file-sorter.
"""

from .fs_utils import setup_logging, split_name, timestamped_name

__all__ = [
    "setup_logging",
    "split_name",
    "timestamped_name",
]
