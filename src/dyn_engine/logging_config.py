"""
Opt-in log output for the ``dyn_engine`` namespace.

Library modules only create loggers under ``dyn_engine`` (the package adds a
NullHandler). :func:`setup_logging` routes those records to a stream and,
optionally, a file. It only ever replaces the handlers it installed itself,
so handlers an application attached to the package logger survive repeated
calls.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    import os
    from typing import TextIO

PACKAGE_LOGGER: Final[str] = "dyn_engine"
LOG_FORMAT: Final[str] = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

_UNKNOWN_LEVEL_ERROR: Final[str] = "Unknown logging level: {level!r}"

_installed: list[logging.Handler] = []


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    if not isinstance(value, int):
        raise ValueError(_UNKNOWN_LEVEL_ERROR.format(level=level))
    return value


def setup_logging(
    level: int | str = logging.INFO,
    log_file: str | os.PathLike[str] | None = None,
    *,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Send ``dyn_engine`` log records to a stream and optionally a file.

    Args:
        level: Level as a number or a name such as ``"debug"``.
        log_file: Path of a log file, truncated on every call.
        stream: Console stream; defaults to the current ``sys.stderr``.

    Raises:
        ValueError: If level is an unknown level name.

    Returns:
        The package logger.
    """
    resolved = _resolve_level(level)
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(resolved)

    while _installed:
        handler = _installed.pop()
        logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setLevel(resolved)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        _installed.append(handler)

    logger.debug("Log output at level %s", logging.getLevelName(resolved))
    return logger
