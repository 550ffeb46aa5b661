"""W3C Trace Context carried on AMQP headers and CloudEvents envelopes.

Parsing and formatting go through OpenTelemetry's
``TraceContextTextMapPropagator``, so version handling follows the W3C rules
(future versions are read, ``ff`` and malformed values are not). New ids come
from the SDK's ``RandomIdGenerator``. ``TraceContext`` keeps the ids as hex
strings so they can be logged, stored and republished as-is.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from opentelemetry import trace
from opentelemetry.propagators.textmap import Getter
from opentelemetry.sdk.trace.id_generator import RandomIdGenerator
from opentelemetry.trace import NonRecordingSpan, SpanContext, TraceFlags, format_span_id, format_trace_id
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

TRACEPARENT_HEADER = "traceparent"
CORRELATION_ID_HEADER = "x-correlation-id"

_propagator = TraceContextTextMapPropagator()
_id_generator = RandomIdGenerator()


class _HeaderGetter(Getter[Mapping[str, Any]]):
    """Case-insensitive getter over AMQP headers, whose values may be bytes."""

    def get(self, carrier: Mapping[str, Any], key: str) -> list[str] | None:
        value = _header(carrier, key)
        if value is None:
            return None
        if isinstance(value, bytes):
            value = value.decode("ascii", errors="replace")
        return [str(value)]

    def keys(self, carrier: Mapping[str, Any]) -> list[str]:
        return [str(key) for key in carrier]


_header_getter = _HeaderGetter()


@dataclass(frozen=True, slots=True)
class TraceContext:
    """Trace identifiers of one hop.

    Attributes:
        trace_id: 32 lowercase hex characters, shared by the whole trace.
        span_id: 16 lowercase hex characters, unique to this hop.
        trace_flags: 2 hex characters (``01`` = sampled).
    """

    trace_id: str
    span_id: str
    trace_flags: str = "01"

    @classmethod
    def generate(cls) -> TraceContext:
        """Start a new sampled trace."""
        return cls(
            trace_id=format_trace_id(_id_generator.generate_trace_id()),
            span_id=format_span_id(_id_generator.generate_span_id()),
        )

    @classmethod
    def from_span_context(cls, span_context: SpanContext) -> TraceContext:
        return cls(
            trace_id=format_trace_id(span_context.trace_id),
            span_id=format_span_id(span_context.span_id),
            trace_flags=f"{int(span_context.trace_flags):02x}",
        )

    @property
    def sampled(self) -> bool:
        return bool(int(self.trace_flags, 16) & TraceFlags.SAMPLED)

    def to_span_context(self, *, is_remote: bool = True) -> SpanContext:
        return SpanContext(
            trace_id=int(self.trace_id, 16),
            span_id=int(self.span_id, 16),
            is_remote=is_remote,
            trace_flags=TraceFlags(int(self.trace_flags, 16)),
        )

    def child(self) -> TraceContext:
        """Same trace, fresh span id; used for outbound messages."""
        return replace(self, span_id=format_span_id(_id_generator.generate_span_id()))

    def to_traceparent(self) -> str:
        carrier: dict[str, str] = {}
        span = NonRecordingSpan(self.to_span_context(is_remote=False))
        _propagator.inject(carrier, context=trace.set_span_in_context(span))
        return carrier[TRACEPARENT_HEADER]

    def __str__(self) -> str:
        return self.to_traceparent()


def _header(headers: Mapping[str, Any], name: str) -> Any:
    if name in headers:
        return headers[name]
    lowered = name.lower()
    for key, value in headers.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return None


def _extract(headers: Mapping[str, Any]) -> TraceContext | None:
    span_context = trace.get_current_span(_propagator.extract(headers, getter=_header_getter)).get_span_context()
    if not span_context.is_valid:
        return None
    return TraceContext.from_span_context(span_context)


def parse_traceparent(value: str | bytes | None) -> TraceContext | None:
    """Parse a single ``traceparent`` value, None when absent or invalid.

    Example:
        >>> parse_traceparent("00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01").trace_id
        '4bf92f3577b34da6a3ce929d0e0e4736'
    """
    if not value:
        return None
    return _extract({TRACEPARENT_HEADER: value})


def extract_trace_context(headers: Mapping[str, Any] | None) -> TraceContext:
    """Read the inbound trace context, generating a new one when needed."""
    return _extract(headers or {}) or TraceContext.generate()


def extract_correlation_id(
    headers: Mapping[str, Any] | None,
    trace_context: TraceContext,
    message_correlation_id: str | None = None,
) -> str:
    """Resolve the correlation id of an inbound message.

    Precedence: ``x-correlation-id`` header, then the AMQP ``correlation_id``
    property, then the trace id.
    """
    value = _header(headers or {}, CORRELATION_ID_HEADER)
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if value:
        return str(value)
    if message_correlation_id:
        return message_correlation_id
    return trace_context.trace_id


__all__ = [
    "CORRELATION_ID_HEADER",
    "TRACEPARENT_HEADER",
    "TraceContext",
    "extract_correlation_id",
    "extract_trace_context",
    "parse_traceparent",
]
