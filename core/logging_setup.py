"""Centralized logging configuration for the report service.

``configure_logging(...)`` attaches a single ``StreamHandler`` to each of the
project's top-level loggers and is called once by the API entrypoint.
``get_logger(name)`` hands out module loggers and keeps library use silent
(``NullHandler``) until an application configures output.

Modules never attach their own handlers.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAMES = ("api", "core", "features", "models")
_LEVEL_ENV_VAR = "EXPENSE_REPORTS_LOG_LEVEL"
_CONFIGURED = False


def _level_from_name(name: str) -> int | None:
    name = name.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = getattr(logging, name, None)
    return numeric if isinstance(numeric, int) else None


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        parsed = _level_from_name(level)
        if parsed is not None:
            return parsed
    # Env override when explicit ``level`` is None or unusable
    env_val = os.getenv(_LEVEL_ENV_VAR)
    if env_val:
        parsed = _level_from_name(env_val)
        if parsed is not None:
            return parsed
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Configure the project loggers exactly once.

    Parameters
    ----------
    level:
        Logging level as ``int`` or level name. ``None`` falls back to the
        ``EXPENSE_REPORTS_LOG_LEVEL`` environment variable, then ``INFO``.
    fmt:
        Optional format string, defaults to
        ``"%(asctime)s %(name)s %(levelname)s %(message)s"``.
    stream:
        Output stream of the handler (``sys.stderr`` by default).
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or "%(asctime)s %(name)s %(levelname)s %(message)s"))

    for name in _PKG_LOGGER_NAMES:
        logger = logging.getLogger(name)
        for h in list(logger.handlers):
            if isinstance(h, logging.NullHandler):
                logger.removeHandler(h)
        logger.setLevel(resolved)
        logger.addHandler(handler)
        logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger, silent until ``configure_logging`` runs."""

    top = logging.getLogger(name.split(".", 1)[0])
    if not _CONFIGURED and not top.handlers:
        top.addHandler(logging.NullHandler())
    return logging.getLogger(name)
