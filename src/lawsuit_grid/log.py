"""Logging helpers for lawsuit-grid.

Library code only asks for loggers::

    from lawsuit_grid.log import get_logger
    logger = get_logger(__name__)

Applications (the example dashboard, the ``lawsuit-grid`` CLI viewer) may
call :func:`configure_logging` once at start-up to get console output.
The root logger is never touched.
"""

from __future__ import annotations

import logging
import sys

from lawsuit_grid.config import LOG_LEVEL

LOGGER_NAME = "lawsuit_grid"
DEFAULT_FMT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"


def configure_logging(
    level: str | int | None = None,
    *,
    fmt: str = DEFAULT_FMT,
    datefmt: str = DEFAULT_DATEFMT,
    force: bool = False,
    name: str = LOGGER_NAME,
) -> None:
    """Attach a stderr handler to the ``lawsuit_grid`` logger, or to *name*'s.

    Args:
        level: Level name or number.  Defaults to ``LAWSUIT_GRID_LOG_LEVEL``.
        fmt: Log record format.
        datefmt: Timestamp format.
        force: Drop previously attached handlers first.  Without it a second
            call is a no-op.
        name: Logger to configure.  Applications pass their own package
            name to get their records on the console too.
    """
    if level is None:
        level = LOG_LEVEL
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    if force:
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)
    elif any(
        isinstance(h, logging.StreamHandler) and h.stream is sys.stderr
        for h in logger.handlers
    ):
        return

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
    logger.addHandler(console)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return *name*'s logger, or the package logger when ``None``."""
    return logging.getLogger(name or LOGGER_NAME)
