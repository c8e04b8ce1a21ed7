"""
Classification rules mapping a file to its destination subdirectory.
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field

from ..core.types import (
    DEFAULT_DATE_FORMAT,
    DateFormat,
    ExtensionCase,
    OrganizeConfig,
    OrganizeRule,
    get_extension,
)

DATE_PATTERNS: Dict[DateFormat, str] = {
    DateFormat.YEAR_MONTH_DAY: "%Y-%m-%d",  # 2024-03-05
    DateFormat.YEAR_MONTH_DAY_COMPACT: "%Y%m%d",  # 20240305
    DateFormat.SHORT_YEAR_MONTH_DAY: "%y-%m-%d",  # 24-03-05
    DateFormat.SHORT_YEAR_MONTH_DAY_COMPACT: "%y%m%d",  # 240305
}


class FileInfo(BaseModel):
    """The metadata classification needs: name and modification time."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Base name of the file")
    modified: datetime = Field(description="Last modification time (local)")

    @classmethod
    def from_path(cls, path: Path) -> "FileInfo":
        """
        Build file info from a stat call.

        Raises:
            OSError: If the file cannot be stat'ed
        """
        mtime = os.stat(path).st_mtime
        return cls(name=Path(path).name, modified=datetime.fromtimestamp(mtime))


def format_date(modified: datetime, date_format: DateFormat) -> str:
    """
    Format a modification time as a folder name.

    Unknown formats use YYYY-MM-DD.
    """
    pattern = DATE_PATTERNS.get(date_format, DATE_PATTERNS[DEFAULT_DATE_FORMAT])
    return modified.strftime(pattern)


def destination_for(file: FileInfo, config: OrganizeConfig) -> str:
    """
    Get the destination subdirectory for a file.

    Pure function of its inputs, never touches the filesystem.

    Args:
        file: File name and modification time
        config: Organize configuration

    Returns:
        Single-level subdirectory name under the target directory; empty for
        an extensionless file under the extension rule
    """
    if config.rule == OrganizeRule.BY_DATE:
        return format_date(file.modified, config.date_format)

    extension = get_extension(file.name)
    if config.extension_case == ExtensionCase.UPPERCASE:
        return extension.upper()
    return extension
