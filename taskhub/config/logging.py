import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

from .settings import settings


def _shared_processors(debug: bool) -> list[Any]:
    return [
        # Add correlation IDs and timestamps
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        # Add caller information in development
        (
            structlog.processors.CallsiteParameterAdder(
                parameters=[structlog.processors.CallsiteParameter.FUNC_NAME]
            )
            if debug
            else structlog.processors.CallsiteParameterAdder(parameters=[])
        ),
    ]


def _renderer(debug: bool) -> Any:
    # JSON formatting for production, pretty printing for development
    return (
        structlog.dev.ConsoleRenderer()
        if debug
        else structlog.processors.JSONRenderer()
    )


def build_stdlib_handler(debug: bool) -> logging.Handler:
    """
    Handler that renders standard library records like structlog events.

    The job engine logs through ``logging.getLogger`` with ``extra`` fields;
    those fields and any bound job context end up as keys of the event.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[
                structlog.stdlib.add_logger_name,
                structlog.stdlib.ExtraAdder(),
                *_shared_processors(debug),
            ],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *([] if debug else [structlog.processors.format_exc_info]),
                _renderer(debug),
            ],
        )
    )
    return handler


def setup_logging() -> None:
    """Configure structured logging with structlog."""

    # Configure standard library logging
    logging.basicConfig(
        handlers=[build_stdlib_handler(settings.debug)],
        level=getattr(logging, settings.log_level),
    )

    # Configure structlog
    structlog.configure(
        processors=[*_shared_processors(settings.debug), _renderer(settings.debug)],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def add_request_context(request_id: str, **context: Any) -> None:
    """Add request-specific context to all log messages."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **context)


@contextmanager
def job_log_context(job_id: str, **context: Any) -> Iterator[None]:
    """Bind the job being executed to every log message inside the block."""
    with structlog.contextvars.bound_contextvars(job_id=job_id, **context):
        yield
