"""Structured logging configuration with store context support.

This module sets up structured logging using structlog with JSON output
and automatic injection of the store that emitted an event.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Optional

import structlog

# Label of the store whose operation is currently running
store_label_var: ContextVar[Optional[str]] = ContextVar("store_label", default=None)


def add_store_label(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add the active store label to a log event if available.

    Args:
        logger: Logger instance
        method_name: Log method name (info, error, etc.)
        event_dict: Event dictionary to modify

    Returns:
        Modified event dictionary with ``store``
    """
    label = store_label_var.get()
    if label and "store" not in event_dict:
        event_dict["store"] = label
    return event_dict


def setup_logging(log_level: str = "INFO", json_logs: bool = True) -> None:
    """Configure structured logging with structlog.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: If True, output logs in JSON format; otherwise use console format

    Example:
        >>> setup_logging(log_level="DEBUG", json_logs=False)
        >>> logger = get_logger(__name__)
        >>> logger.info("store_opened", backend="sqlite")
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        add_store_label,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_logs:
        renderers = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [
            structlog.processors.ExceptionPrettyPrinter(),
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=shared_processors + renderers,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


@contextmanager
def store_context(label: str) -> Iterator[None]:
    """Tag every log event emitted inside the block with a store label.

    Args:
        label: Short description of the store (backend and location)

    Example:
        >>> with store_context("sqlite:/tmp/app"):
        ...     logger.debug("record_written", key="user")
    """
    token = store_label_var.set(label)
    try:
        yield
    finally:
        store_label_var.reset(token)


def get_store_label() -> Optional[str]:
    """Return the store label bound to the current context, if any."""
    return store_label_var.get()
