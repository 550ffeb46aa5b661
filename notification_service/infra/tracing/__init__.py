"""Distributed tracing: W3C traceparent handling and OpenTelemetry helpers.

- setup_tracing(): Initialize OpenTelemetry tracing at startup
- get_tracer(): Get a tracer for creating custom spans
- add_span_attributes() / add_span_event() / record_exception(): span helpers
- TraceContext / parse_traceparent(): traceparent values read and written through the OpenTelemetry W3C propagator
"""

from notification_service.infra.tracing.opentelemetry import (
    add_span_attributes,
    add_span_event,
    context_from_trace,
    current_trace_context,
    get_tracer,
    record_exception,
    setup_tracing,
    shutdown_tracing,
)
from notification_service.infra.tracing.traceparent import (
    CORRELATION_ID_HEADER,
    TRACEPARENT_HEADER,
    TraceContext,
    extract_correlation_id,
    extract_trace_context,
    parse_traceparent,
)

__all__ = [
    "CORRELATION_ID_HEADER",
    "TRACEPARENT_HEADER",
    "TraceContext",
    "add_span_attributes",
    "add_span_event",
    "context_from_trace",
    "current_trace_context",
    "extract_correlation_id",
    "extract_trace_context",
    "get_tracer",
    "parse_traceparent",
    "record_exception",
    "setup_tracing",
    "shutdown_tracing",
]
