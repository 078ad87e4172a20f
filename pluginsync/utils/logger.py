"""Logging utilities for pluginsync."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(name: str = "pluginsync") -> logging.Logger:
    """Get a logger with a single stdout handler attached.

    Args:
        name: Logger name, usually ``__name__``.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

    return logger


def set_level(level: str | int) -> None:
    """Set the level on every pluginsync logger created so far."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level}")

    for name, logger in logging.Logger.manager.loggerDict.items():
        if name == "pluginsync" or name.startswith("pluginsync."):
            if isinstance(logger, logging.Logger):
                logger.setLevel(level)
