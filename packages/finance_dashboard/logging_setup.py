"""Logging for ``finance_dashboard``.

Every module logs through ``get_logger("finance_dashboard.<module>")`` and
never installs handlers. Until the CLI calls :func:`configure_logging` the
package logger only carries a ``NullHandler``, so importing the package from
another application stays quiet.

Messages use a ``<area>:<event> key=value`` shape (``rates:updated``,
``local_cache:expired``) so they can be grepped per subsystem.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "finance_dashboard"
LEVEL_ENV = "FINANCE_DASHBOARD_LOG_LEVEL"
_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_configured = False


def resolve_level(level: int | str | None = None) -> int:
    """Turn ``level`` (or ``$FINANCE_DASHBOARD_LOG_LEVEL``) into a level number.

    Unknown names fall back to ``INFO``.
    """

    if level is None:
        level = os.getenv(LEVEL_ENV) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    value = logging.getLevelNamesMapping().get(name)
    return value if value is not None else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Send package logs to ``stream``; later calls are no-ops."""

    global _configured
    if _configured:
        return

    logger = logging.getLogger(PACKAGE_LOGGER)
    for h in [h for h in logger.handlers if isinstance(h, logging.NullHandler)]:
        logger.removeHandler(h)

    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _FORMAT))
    logger.setLevel(resolved)
    logger.addHandler(handler)
    # Host applications keep their own root handlers out of our output.
    logger.propagate = False

    _configured = True


def get_logger(name: str) -> logging.Logger:
    pkg = logging.getLogger(PACKAGE_LOGGER)
    if not _configured and not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["LEVEL_ENV", "PACKAGE_LOGGER", "configure_logging", "get_logger", "resolve_level"]
