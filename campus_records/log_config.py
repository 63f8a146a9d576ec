"""
Structured logging setup.

The engine logs through ``structlog.get_logger(__name__)`` everywhere; the
application entry point calls ``configure_logging`` once with its settings.
"""

import logging

import structlog

from campus_records.config import RecordsSettings


def configure_logging(settings: RecordsSettings) -> None:
    """
    Configure structlog from the records settings.

    Args:
        settings: Provides ``log_level`` and ``log_format`` (json or text)
    """
    renderer: structlog.types.Processor
    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    structlog.get_logger(__name__).debug(
        "Logging configured",
        app=settings.app_name,
        level=settings.log_level,
        format=settings.log_format,
    )
