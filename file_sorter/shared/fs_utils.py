"""
Filesystem and logging helpers shared by the CLI and the pipeline.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple

COLLISION_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


def split_name(name: str) -> Tuple[str, str]:
    """
    Split a file name into stem and extension at the last dot.

    Args:
        name: File name

    Returns:
        Tuple of (stem, extension), extension keeps its dot and case
    """
    index = name.rfind(".")
    if index <= 0:
        return name, ""
    return name[:index], name[index:]


def timestamped_name(name: str, when: Optional[datetime] = None) -> str:
    """
    Insert a second-resolution timestamp between stem and extension.

    report.txt -> report_20240305_143022.txt
    """
    stem, suffix = split_name(name)
    stamp = (when or datetime.now()).strftime(COLLISION_TIMESTAMP_FORMAT)
    return f"{stem}_{stamp}{suffix}"


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """
    Configure logging for the application.

    Args:
        verbose: If True, set logging level to DEBUG
        quiet: If True, set logging level to WARNING
    """
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
