"""
Remembered user choices between runs.
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .types import DEFAULT_DATE_FORMAT, DateFormat, ExtensionCase, OrganizeRule

logger = logging.getLogger(__name__)


class UserPreferences(BaseModel):
    """Last-used organize options."""

    rule: OrganizeRule = Field(
        default=OrganizeRule.BY_DATE, description="Classification rule"
    )
    date_format: DateFormat = Field(
        default=DEFAULT_DATE_FORMAT, description="Folder naming pattern"
    )
    extension_case: ExtensionCase = Field(
        default=ExtensionCase.LOWERCASE, description="Extension folder case"
    )

    def save(self, path: Path) -> None:
        """
        Save preferences to a JSON file.

        Args:
            path: Path to the preferences file
        """
        path = Path(path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2)

        logger.debug(f"Saved preferences to {path}")

    @classmethod
    def load(cls, path: Path) -> "UserPreferences":
        """
        Load preferences from a JSON file.

        Missing or unreadable files give the defaults.

        Args:
            path: Path to the preferences file

        Returns:
            Loaded preferences
        """
        path = Path(path).expanduser()
        if not path.exists():
            return cls()

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return cls.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable preferences {path}: {e}")
            return cls()
