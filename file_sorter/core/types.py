"""
Type definitions for the scan-classify-move pipeline.
"""

import logging
from collections import Counter
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


class OrganizeRule(str, Enum):
    """Classification rule selecting the destination subdirectory."""

    BY_DATE = "date"
    BY_EXTENSION = "extension"


class DateFormat(str, Enum):
    """Folder naming patterns for the date rule."""

    YEAR_MONTH_DAY = "YYYY-MM-DD"  # 2024-03-05
    YEAR_MONTH_DAY_COMPACT = "YYYYMMDD"  # 20240305
    SHORT_YEAR_MONTH_DAY = "YY-MM-DD"  # 24-03-05
    SHORT_YEAR_MONTH_DAY_COMPACT = "YYMMDD"  # 240305


DEFAULT_DATE_FORMAT = DateFormat.YEAR_MONTH_DAY


class ExtensionCase(str, Enum):
    """Letter case used for extension folder names."""

    UPPERCASE = "uppercase"
    LOWERCASE = "lowercase"


class MoveStatus(str, Enum):
    """Outcome of handling a single file."""

    MOVED = "moved"
    SKIPPED = "skipped"
    FAILED = "failed"


def get_extension(name: str) -> str:
    """
    Get the lower-cased extension of a file name, including the dot.

    Args:
        name: File name (not a full path)

    Returns:
        Extension such as ".txt", or "" when the name has none
    """
    index = name.rfind(".")
    if index < 0 or index == len(name) - 1:
        return ""
    return name[index:].lower()


def normalize_extension(extension: str) -> str:
    """Lower-case an extension and make sure it starts with a dot."""
    extension = extension.strip().lower()
    if extension and not extension.startswith("."):
        extension = f".{extension}"
    return extension


class ScanResult(BaseModel):
    """Snapshot of one scan over a set of source directories."""

    model_config = ConfigDict(frozen=True)

    files: FrozenSet[Path] = Field(
        default_factory=frozenset, description="Absolute paths of discovered files"
    )
    extensions: FrozenSet[str] = Field(
        default_factory=frozenset,
        description="Distinct lower-case extensions, leading dot included",
    )
    warnings: Tuple[str, ...] = Field(
        default_factory=tuple, description="Walk errors that were skipped"
    )

    def extension_counts(self) -> Dict[str, int]:
        """
        Count discovered files per extension.

        Returns:
            Mapping of extension to number of files, extensionless files under ""
        """
        return dict(Counter(get_extension(path.name) for path in self.files))


class OrganizeConfig(BaseModel):
    """Everything the dispatcher needs for one organize run."""

    target_dir: Path = Field(description="Root directory for rule subdirectories")

    rule: OrganizeRule = Field(
        default=OrganizeRule.BY_DATE,
        description="Classification rule",
    )

    extension_filter: Set[str] = Field(
        default_factory=set,
        description="Extensions eligible for moving; empty means nothing moves",
    )

    date_format: DateFormat = Field(
        default=DEFAULT_DATE_FORMAT,
        description="Folder naming pattern for the date rule",
    )

    extension_case: ExtensionCase = Field(
        default=ExtensionCase.LOWERCASE,
        description="Letter case of extension folders",
    )

    @field_validator("extension_filter", mode="before")
    @classmethod
    def _normalize_filter(cls, value):
        if value is None:
            return set()
        return {normalize_extension(ext) for ext in value if ext and ext.strip()}

    @field_validator("date_format", mode="before")
    @classmethod
    def _fallback_date_format(cls, value):
        if isinstance(value, DateFormat):
            return value
        try:
            return DateFormat(value)
        except ValueError:
            logger.warning(
                f"Unsupported date format {value!r}, using {DEFAULT_DATE_FORMAT.value}"
            )
            return DEFAULT_DATE_FORMAT


class MoveOutcome(BaseModel):
    """Result of processing one file in the worker pool."""

    source_path: Path
    status: MoveStatus
    destination_dir: Optional[Path] = None
    destination_path: Optional[Path] = None
    reason: Optional[str] = Field(default=None, description="Why it was skipped")
    error: Optional[str] = Field(default=None, description="Why it failed")
    warning: Optional[str] = Field(
        default=None, description="Non-fatal problem on an otherwise good move"
    )
    worker_id: Optional[int] = None

    @property
    def moved(self) -> bool:
        return self.status == MoveStatus.MOVED


class ProcessSummary(BaseModel):
    """Counters for a finished organize run."""

    checked: int = 0
    moved: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)

    def record(self, outcome: MoveOutcome) -> None:
        """Fold one outcome into the counters."""
        self.checked += 1
        if outcome.status == MoveStatus.MOVED:
            self.moved += 1
            if outcome.warning:
                self.warnings.append(outcome.warning)
        elif outcome.status == MoveStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
            self.errors.append(f"{outcome.source_path}: {outcome.error}")
