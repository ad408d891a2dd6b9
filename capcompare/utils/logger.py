"""
CapCompare — Structured Logging Utility
Uses structlog for production-grade structured logging.
"""
import structlog
import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

from capcompare.config.settings import AppSettings, get_settings


def setup_logging(settings: Optional[AppSettings] = None) -> None:
    """Configure structured logging for the entire application."""
    settings = settings or get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    # SQL statements only when explicitly requested
    sql_level = logging.INFO if settings.database.echo_sql else logging.WARNING
    logging.getLogger("sqlalchemy.engine").setLevel(sql_level)


@contextmanager
def log_context(**values) -> Iterator[None]:
    """Bind key/values to every log event emitted inside the block."""
    with structlog.contextvars.bound_contextvars(**values):
        yield


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name or "capcompare")
