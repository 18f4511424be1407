"""Logger configuration and convenience helpers."""

from __future__ import annotations

import logging
import os
import sys

_DEFAULT_LOGGER_NAME = "chesslog"
_DEFAULT_FORMATTER = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
_DEFAULT_HANDLER = logging.StreamHandler(sys.stdout)
_DEFAULT_HANDLER.setFormatter(_DEFAULT_FORMATTER)


def resolve_level(level: int | str | None) -> int:
    """Return a numeric logging level from a number or a level name.

    >>> resolve_level("warning")
    30
    >>> resolve_level(None)
    20
    """
    if isinstance(level, int):
        return level
    name = (level or "INFO").strip().upper()
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


_DEFAULT_LOG_LEVEL = resolve_level(os.getenv("CHESSLOG_LOG_LEVEL"))


def _configure_logger(logger: logging.Logger, level: int) -> None:
    """Attach the shared stdout handler once and stop propagation.

    Parameters
    ----------
    logger : logging.Logger
        The logger instance to configure.
    level : int
        Applied only when the logger has no level of its own yet.
    """
    if logger.level == logging.NOTSET:
        logger.setLevel(level)
    if not logger.handlers:
        logger.addHandler(_DEFAULT_HANDLER)
    logger.propagate = False


def get_logger(name: str | None = None, level: int = _DEFAULT_LOG_LEVEL) -> logging.Logger:
    """Return a configured logger for the given name."""
    logger = logging.getLogger(name or _DEFAULT_LOGGER_NAME)
    _configure_logger(logger, level)
    return logger


def set_level(level: int | str, logger_names: list[str] | None = None) -> None:
    """Set the level of every configured ``chesslog`` logger plus ``uvicorn``.

    With ``logger_names`` only those loggers are changed.
    """
    value = resolve_level(level)
    if logger_names is None:
        names = [_DEFAULT_LOGGER_NAME, "uvicorn"] + [
            name
            for name in logging.root.manager.loggerDict
            if name.startswith(f"{_DEFAULT_LOGGER_NAME}.")
        ]
    else:
        names = logger_names
    for name in names:
        logging.getLogger(name).setLevel(value)


class Logger(logging.Logger):
    """Standalone logger wired to the chesslog handler."""

    def __init__(self, name: str = _DEFAULT_LOGGER_NAME, level: int = _DEFAULT_LOG_LEVEL) -> None:
        super().__init__(name, level)
        _configure_logger(self, level)
