"""Logging setup for ai-commit."""

from __future__ import annotations

import logging
import sys
from typing import Final

DEFAULT_LOG_FORMAT: Final[str] = "%(levelname)s %(name)s: %(message)s"
_LEVELS: Final[dict[str, int]] = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def configure_logging(level: str = "WARNING", fmt: str | None = None) -> None:
    """Send log records for the ``aicommit`` namespace to stderr.

    Args:
        level: Logging level name (e.g. "WARNING", "DEBUG"). Unknown names
            fall back to WARNING.
        fmt: Optional format string.
    """

    logger = logging.getLogger("aicommit")
    logger.setLevel(_normalize_level(level))
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(fmt or DEFAULT_LOG_FORMAT))
        logger.addHandler(handler)
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module or component."""

    return logging.getLogger(name)


def _normalize_level(level: str) -> int:
    return _LEVELS.get(level.strip().upper(), logging.WARNING)
