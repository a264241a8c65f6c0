"""Logging configuration."""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def resolve_level(level_name: Optional[str]) -> int:
    """Map a level name like "debug" to its logging constant, defaulting to INFO."""
    if not level_name:
        return logging.INFO
    level = logging.getLevelName(level_name.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level_name: Optional[str] = None) -> None:
    """
    Set up console logging for scripts and local development.

    Library code never calls this; it only creates module loggers.
    """
    logging.basicConfig(format=LOG_FORMAT, level=resolve_level(level_name))
