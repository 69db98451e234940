"""Structured logging setup.

The library only emits events through ``structlog.get_logger()``. Applications
that want the default rendering call ``configure_logging()`` once at startup.
"""

import logging
from typing import Optional

import structlog

from safer_httpx.config import get_settings


def configure_logging(level: Optional[str] = None, debug: Optional[bool] = None) -> None:
    """Configure structlog processors and the minimum level.

    Args:
        level: Level name ("debug", "info", ...). Defaults to settings.LOG_LEVEL.
        debug: Use the console renderer instead of JSON. Defaults to settings.DEBUG.
    """
    settings = get_settings()
    debug = settings.DEBUG if debug is None else debug
    min_level = logging.getLevelName((level or settings.LOG_LEVEL).upper())
    if not isinstance(min_level, int):
        min_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        cache_logger_on_first_use=False,
    )
