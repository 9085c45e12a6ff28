"""
Structured logging configuration.

All modules log through structlog with an event name and
key/value fields (as_of_date, residence_id, debtor_id,
allocation_id) so ledger activity can be filtered per debtor
or per report run.

Configuration:
- LOG_FORMAT=console: human-readable output for development
- LOG_FORMAT=json: one JSON object per line for log aggregation
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR
"""

import logging
import sys

import structlog

from residence_ledger.config import Settings, get_settings


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog once at application startup."""
    settings = settings or get_settings()
    level = logging.getLevelName(settings.LOG_LEVEL)
    if not isinstance(level, int):
        level = logging.INFO

    if settings.LOG_FORMAT == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
    )
