"""structlog configuration for orderdesk entry points."""

import logging
import os
import sys

import structlog

LOG_LEVEL_ENV = "ORDERDESK_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"


def resolve_level(level: str | None = None) -> int:
    """Turn a level name (or the environment default) into a logging level."""
    name = (level or os.environ.get(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL)).upper()
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.WARNING


def configure_logging(level: str | None = None) -> None:
    """
    Configure structlog to write key/value lines to stderr.

    Rendered events are handed to the stdlib root logger, whose handler
    reports write failures through ``Handler.handleError`` instead of
    raising into the caller. Called by the CLI and by ``serve``; library
    code only calls ``structlog.get_logger``.
    """
    log_level = resolve_level(level)
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level, force=True)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
