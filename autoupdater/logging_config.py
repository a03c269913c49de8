"""Structured logging for the updater.

Events go to stdout, interleaved with the supervised command's own output:
coloured console lines in development, one JSON object per line when
``AUTOUPDATER_ENV=production``.
"""

from __future__ import annotations

import logging
import sys

import structlog

from autoupdater.config import Settings, get_settings

# Stdlib loggers that report every job add/run at INFO; the updater logs its own events.
_CHATTY_LOGGERS = ("apscheduler",)


def _renderer(settings: Settings) -> structlog.types.Processor:
    if settings.autoupdater_env == "production":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging() -> None:
    """Configure structlog and the stdlib root logger from ``Settings``."""
    settings = get_settings()
    log_level = getattr(logging, settings.autoupdater_log_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            _renderer(settings),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(name)s: %(message)s", stream=sys.stdout, level=log_level)
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a named structured logger."""
    return structlog.get_logger(name)
