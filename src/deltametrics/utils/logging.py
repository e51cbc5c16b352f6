"""Logging helpers shared by every module."""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO", fmt: Optional[str] = None) -> None:
    """
    Configure the root logger once at process start.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR)
        fmt: Optional log format override
    """
    numeric_level = logging.getLevelName(str(level).upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")
    logging.basicConfig(level=numeric_level, format=fmt or LOG_FORMAT, force=True)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
