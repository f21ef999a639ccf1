"""
Structured logging configuration using structlog.

JSON logs in production, coloured console logs in development.
Job processing binds ``job_id`` (and the current stage) as context
variables so every line emitted while a job runs can be correlated.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from structlog.types import Processor

from src.config.settings import get_settings


def setup_logging(json_logs: bool | None = None) -> None:
    """
    Configure structured logging for the application.

    Args:
        json_logs: Force JSON (True) or console (False) rendering.
            Defaults to JSON in production only.
    """
    settings = get_settings()
    if json_logs is None:
        json_logs = settings.is_production

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_logs:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )

    for noisy in ("httpx", "httpcore", "asyncio", "asyncpg", "multipart"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger (defaults to the root logger name)."""
    return structlog.get_logger(name)


@contextmanager
def job_log_context(job_id: str, **kwargs) -> Iterator[None]:
    """
    Bind ``job_id`` (plus extra fields) for the duration of a block.

    Context vars are task-local, so concurrent jobs never see each
    other's bindings.
    """
    tokens = structlog.contextvars.bind_contextvars(job_id=job_id, **kwargs)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)
