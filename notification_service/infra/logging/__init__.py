"""Structured logging for the notification service.

Usage:
    from notification_service.infra.logging import setup_logging, set_log_context

    setup_logging()
    set_log_context(correlation_id="abc-123")
    logging.getLogger(__name__).info("Event received", extra={"event_type": "order.placed"})
"""

from __future__ import annotations

from .config import build_logging_config, setup_logging, shutdown
from .context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    set_log_context,
)
from .formatters import JSONFormatter
from .lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "build_logging_config",
    "clear_log_context",
    "get_lazy_logger",
    "get_log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
