"""Loggers for docsync.

Everything logs under the ``docsync`` logger. Resolved doc text goes to
standard output, so diagnostics are written to standard error (and an
optional file) only.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_LOGGER_NAME = "docsync"
_CONSOLE_FORMAT = "[docsync] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger for one component, e.g. ``get_logger("index")`` -> ``docsync.index``."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Send docsync diagnostics to stderr, plus ``log_file`` when given.

    ``verbose`` lowers the threshold to DEBUG, which also reports skipped
    source regions and ignored re-exports. Calling this again replaces the
    handlers installed by the previous call.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    _attach(logger, logging.StreamHandler(sys.stderr), level, _CONSOLE_FORMAT)
    if log_file is not None:
        _attach(logger, logging.FileHandler(log_file, encoding="utf-8"), level, _FILE_FORMAT)
    return logger


def _attach(logger: logging.Logger, handler: logging.Handler, level: int, fmt: str) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)


__all__ = ["configure_logging", "get_logger"]
