"""Observability helpers: structured logging with store context."""

from pkvstore.observability.logging import get_logger, setup_logging, store_context

__all__ = [
    "setup_logging",
    "get_logger",
    "store_context",
]
