"""Structured logging setup for diffscout."""

import logging
import sys

import structlog

from diffscout.config import DiffScoutConfig


def configure_logging(config: DiffScoutConfig | None = None) -> None:
    """Configure structlog from config.

    Logs go to stderr so stdout stays free for command output.
    """
    config = config or DiffScoutConfig()
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    if config.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
