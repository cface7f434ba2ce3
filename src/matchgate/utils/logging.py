"""Logging configuration for the MatchGate service."""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import structlog
from structlog.types import Processor

from matchgate.config import settings


def configure_logging() -> None:
    """
    Configure structured logging for the application.

    Routes the standard library logger through `structlog`, with
    `ConsoleRenderer` output in development and `JSONRenderer` elsewhere.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        level=log_level,
        stream=sys.stdout,
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.ENVIRONMENT.lower() == "development":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **initial_values: Any) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger with the given name and initial values.

    Args:
        name (str): Logger name (usually `__name__`).
        **initial_values: Key-value pairs to initially bind to the logger context.

    Returns:
        structlog.stdlib.BoundLogger: A configured structured logger instance.
    """
    return structlog.get_logger(name).bind(**initial_values)  # type: ignore


@contextmanager
def log_context(**values: Any) -> Iterator[None]:
    """
    Bind request-scoped values to every log line emitted inside the block.

    Values live in `structlog.contextvars`, so loggers created at import time
    in other modules pick them up through `merge_contextvars`. Keys bound by
    an enclosing block are restored on exit.

    Args:
        **values: Key-value pairs such as `actor_id` or `request_id`.
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield


def log_error(
    logger: structlog.stdlib.BoundLogger,
    error: Exception,
    message: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log an error with structured context.

    Adds the error type and message, plus `details` when the error is one of
    ours.

    Args:
        logger (structlog.stdlib.BoundLogger): The logger instance to use.
        error (Exception): The exception to log.
        message (Optional[str], optional): Custom message. Defaults to "An error occurred".
        extra (Optional[Dict[str, Any]], optional): Additional context to log.
    """
    context = dict(extra or {})
    context["error_type"] = error.__class__.__name__
    context["error_message"] = str(error)

    if hasattr(error, "details"):
        context["error_details"] = error.details

    logger.error(message or "An error occurred", **context, exc_info=error)
