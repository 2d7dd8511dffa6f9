"""Structured logging for ttscore.

Scoring modules log through ``get_logger(__name__)``. The host application
calls ``configure_logging`` once at startup; until then structlog's defaults
apply. Context variables are merged into every event, so the tournament and
match ids bound while scoring a tournament's match show up on its warnings.
"""

import logging

import structlog
from structlog.contextvars import merge_contextvars
from structlog.processors import (
    JSONRenderer,
    StackInfoRenderer,
    TimeStamper,
    add_log_level,
    format_exc_info,
)

from ttscore import config


def _renderer(cli_mode: bool):
    if cli_mode:
        from structlog.dev import ConsoleRenderer
        return ConsoleRenderer(colors=True)
    return JSONRenderer()


def configure_logging(cli_mode: bool = False, log_level: str | None = None) -> None:
    """Configure structlog for the host application.

    Args:
        cli_mode: Render human-readable lines for a terminal instead of JSON
        log_level: Minimum level name, defaults to TTSCORE_LOG_LEVEL. Unknown
                   names fall back to INFO.
    """
    level = logging.getLevelName((log_level or config.LOG_LEVEL).upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[
            merge_contextvars,
            add_log_level,
            TimeStamper(fmt="iso"),
            StackInfoRenderer(),
            format_exc_info,
            _renderer(cli_mode),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a logger, named after the calling module when given ``__name__``."""
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()
