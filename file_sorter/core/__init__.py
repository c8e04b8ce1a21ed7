"""
Core types, log delivery and preferences.
"""

from .log_sink import LoggingLogSink, LogSink, QueueLogSink
from .preferences import UserPreferences
from .types import (
    DateFormat,
    ExtensionCase,
    MoveOutcome,
    MoveStatus,
    OrganizeConfig,
    OrganizeRule,
    ProcessSummary,
    ScanResult,
    get_extension,
)

__all__ = [
    "DateFormat",
    "ExtensionCase",
    "LogSink",
    "LoggingLogSink",
    "MoveOutcome",
    "MoveStatus",
    "OrganizeConfig",
    "OrganizeRule",
    "ProcessSummary",
    "QueueLogSink",
    "ScanResult",
    "UserPreferences",
    "get_extension",
]
