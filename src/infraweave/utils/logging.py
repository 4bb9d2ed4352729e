"""Logging setup for InfraWeave."""

import logging
import os
import sys
from typing import Optional, Union

LOG_LEVEL_ENV = "INFRAWEAVE_LOG_LEVEL"
ROOT_LOGGER = "infraweave"

# Worker threads log concurrently, so records carry the thread name.
DEFAULT_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"


def _resolve_level(level: Optional[Union[int, str]]) -> int:
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "INFO")
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        return resolved if isinstance(resolved, int) else logging.INFO
    return level


def setup_logging(level: Optional[Union[int, str]] = None, format_string: Optional[str] = None) -> logging.Logger:
    """
    Configure the ``infraweave`` logger hierarchy.
    
    Args:
        level: Level name or number (default: INFRAWEAVE_LOG_LEVEL or INFO)
        format_string: Custom format string (optional)
    
    Returns:
        The ``infraweave`` root logger
    """
    logging.basicConfig(
        format=format_string or DEFAULT_FORMAT,
        stream=sys.stderr,
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(_resolve_level(level))
    return logger


def set_quiet(quiet: bool = True) -> None:
    """Only warnings and errors from infraweave loggers."""
    if quiet:
        logging.getLogger(ROOT_LOGGER).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific module."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
