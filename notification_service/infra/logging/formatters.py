"""JSON Lines formatter for worker logs."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from opentelemetry import trace

# Attributes every LogRecord carries; anything else came from extra= or the log context
_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message", "asctime"}

# Delivery fields are emitted right after the fixed keys so lines scan consistently
_DELIVERY_KEYS = ("correlation_id", "trace_id", "event_type", "routing_key", "user_id", "notification_id")


class JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Output order: ``timestamp``, the ``fmt_keys`` fields, static fields, the
    delivery context (correlation id, trace id, event type, ...), then any
    remaining ``extra`` fields. The active OpenTelemetry span, when there is
    one, fills ``trace_id``/``span_id`` if the log context has not.

    Example output:
        {"timestamp": "2024-05-01T10:00:00.123Z", "level": "INFO", "logger": "notification_service.features.notifications.handler", "message": "Notification processed", "service": "notification-service", "correlation_id": "corr-123", "event_type": "order.placed", "notification_id": "5d0c...", "status": "sent"}
    """

    def __init__(
        self,
        fmt_keys: dict[str, str] | None = None,
        static: dict[str, Any] | None = None,
    ) -> None:
        super().__init__()
        self.fmt_keys = fmt_keys or {"level": "levelname", "logger": "name", "message": "message"}
        self.static = static or {}

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        timestamp = datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="milliseconds")

        data: dict[str, Any] = {"timestamp": timestamp.replace("+00:00", "Z")}
        data.update((key, getattr(record, attr, None)) for key, attr in self.fmt_keys.items())
        data.update(self.static)

        extras = {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS and k not in data}
        for key in _DELIVERY_KEYS:
            if key in extras:
                data[key] = extras.pop(key)

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            data.setdefault("trace_id", format(span_context.trace_id, "032x"))
            data["span_id"] = format(span_context.span_id, "016x")

        data.update(extras)

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info).replace("\n", "\\n")
        if record.stack_info:
            data["stack_trace"] = record.stack_info.replace("\n", "\\n")

        return json.dumps(data, ensure_ascii=False, default=str)
