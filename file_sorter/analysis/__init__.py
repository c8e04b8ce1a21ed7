"""
Analysis module: discovering files in source directories.
"""

from .scanner import Scanner, normalize_sources

__all__ = ["Scanner", "normalize_sources"]
