"""OpenTelemetry tracing configuration and span helpers.

Spans are exported via OTLP to collectors like Jaeger or Tempo when
``OTEL_ENABLED`` is set. Without an SDK configured, the API hands out no-op
spans and every helper here is safe to call.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from opentelemetry import context as otel_context
from opentelemetry import trace
from opentelemetry.trace import NonRecordingSpan, format_trace_id

from .traceparent import TraceContext

if TYPE_CHECKING:
    from notification_service.core.settings.otel import OtelSettings

logger = logging.getLogger(__name__)

_tracer_provider: Any | None = None


def setup_tracing(otel_settings: OtelSettings | None = None) -> None:
    """Configure OpenTelemetry tracing for the service.

    Sets up the OTLP exporter, resource attributes, sampler and a batch span
    processor. Call once at worker startup. A broken tracing setup is logged
    and never prevents the worker from starting.
    """
    global _tracer_provider

    if otel_settings is None:
        from notification_service.core.settings import get_otel_settings

        otel_settings = get_otel_settings()

    if not otel_settings.is_configured:
        logger.info("OpenTelemetry tracing is disabled")
        return

    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        tracer_provider = TracerProvider(
            resource=Resource(attributes=otel_settings.resource_attributes()),
            sampler=otel_settings.get_sampler(),
        )
        tracer_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(**otel_settings.exporter_kwargs()))
        )
        trace.set_tracer_provider(tracer_provider)
        _tracer_provider = tracer_provider

        logger.info(
            "OpenTelemetry tracing configured",
            extra={
                "service": otel_settings.service_name,
                "endpoint": str(otel_settings.endpoint),
                "sampler": otel_settings.sampler_type,
                "sample_rate": otel_settings.sample_rate,
            },
        )
    except Exception as e:
        logger.exception(
            "Failed to setup OpenTelemetry tracing",
            extra={"exception": str(e)},
        )


def shutdown_tracing() -> None:
    """Flush and shut down the tracer provider installed by setup_tracing()."""
    global _tracer_provider

    if _tracer_provider is None:
        return
    try:
        _tracer_provider.shutdown()
    except Exception as e:
        logger.warning("Failed to shut down tracer provider", extra={"exception": str(e)})
    _tracer_provider = None


def get_tracer(name: str) -> trace.Tracer:
    """Get a tracer instance for creating custom spans.

    Example:
        tracer = get_tracer(__name__)

        with tracer.start_as_current_span("notification.render") as span:
            span.set_attribute("event.type", event_type)
    """
    return trace.get_tracer(name)


def _local_span_in_trace(trace_context: TraceContext) -> trace.SpanContext | None:
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid and not span_context.is_remote:
        if format_trace_id(span_context.trace_id) == trace_context.trace_id:
            return span_context
    return None


def context_from_trace(trace_context: TraceContext) -> otel_context.Context:
    """Parent context for the spans of an inbound message.

    When FastStream's telemetry middleware already opened a span for the
    delivery in the same trace, that span stays the parent. Otherwise the
    producer's span from the ``traceparent`` becomes the remote parent.
    """
    if _local_span_in_trace(trace_context) is not None:
        return otel_context.get_current()
    return trace.set_span_in_context(NonRecordingSpan(trace_context.to_span_context()))


def current_trace_context(fallback: TraceContext) -> TraceContext:
    """Trace context for an outbound message.

    Uses the active span when one belongs to the same trace, otherwise a
    child of ``fallback`` (same trace id, fresh span id).
    """
    span_context = _local_span_in_trace(fallback)
    if span_context is not None:
        return TraceContext.from_span_context(span_context)
    return fallback.child()


def add_span_attributes(attributes: dict[str, Any]) -> None:
    """Add attributes to the current span; None values are skipped."""
    span = trace.get_current_span()
    if span.is_recording():
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(key, value)


def add_span_event(name: str, attributes: dict[str, Any] | None = None) -> None:
    """Add an event to the current span.

    Example:
        add_span_event("notification.persisted", {"notification.id": notification_id})
    """
    span = trace.get_current_span()
    if span.is_recording():
        span.add_event(name, attributes or {})


def record_exception(exception: BaseException) -> None:
    """Record an exception in the current span and mark it as an error."""
    span = trace.get_current_span()
    if span.is_recording():
        span.record_exception(exception)
        span.set_status(trace.Status(trace.StatusCode.ERROR, str(exception)))


__all__ = [
    "add_span_attributes",
    "add_span_event",
    "context_from_trace",
    "current_trace_context",
    "get_tracer",
    "record_exception",
    "setup_tracing",
    "shutdown_tracing",
]
