"""Tests for W3C traceparent handling and correlation id resolution."""

from __future__ import annotations

import pytest

from notification_service.infra.tracing import (
    TraceContext,
    extract_correlation_id,
    extract_trace_context,
    parse_traceparent,
)

VALID = "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01"


@pytest.mark.unit
class TestParseTraceparent:
    def test_valid_header(self):
        ctx = parse_traceparent(VALID)

        assert ctx == TraceContext(
            trace_id="4bf92f3577b34da6a3ce929d0e0e4736",
            span_id="00f067aa0ba902b7",
            trace_flags="01",
        )
        assert ctx.sampled is True
        assert ctx.to_traceparent() == VALID

    def test_bytes_header(self):
        assert parse_traceparent(VALID.encode()) is not None

    @pytest.mark.parametrize(
        "value",
        [
            None,
            "",
            "garbage",
            "ff-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01",  # forbidden version
            "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01-extra",  # version 00 has four fields
            "00-4BF92F3577B34DA6A3CE929D0E0E4736-00f067aa0ba902b7-01",  # uppercase
            "00-00000000000000000000000000000000-00f067aa0ba902b7-01",  # zero trace id
            "00-4bf92f3577b34da6a3ce929d0e0e4736-0000000000000000-01",  # zero span id
            "00-4bf92f3577b34da6a3ce929d0e0e473-00f067aa0ba902b7-01",  # short trace id
            "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-1",  # short flags
        ],
    )
    def test_invalid_headers(self, value):
        assert parse_traceparent(value) is None

    @pytest.mark.parametrize(
        "value",
        [
            "01-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01",
            "01-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01-extrafield",
        ],
    )
    def test_future_versions_keep_the_trace(self, value):
        ctx = extract_trace_context({"traceparent": value})

        assert ctx.trace_id == "4bf92f3577b34da6a3ce929d0e0e4736"
        assert ctx.span_id == "00f067aa0ba902b7"
        assert ctx.to_traceparent() == VALID


@pytest.mark.unit
class TestTraceContext:
    def test_generate_produces_valid_ids(self):
        ctx = TraceContext.generate()

        assert parse_traceparent(ctx.to_traceparent()) == ctx

    def test_child_keeps_trace_id(self):
        parent = parse_traceparent(VALID)
        child = parent.child()

        assert child.trace_id == parent.trace_id
        assert child.span_id != parent.span_id
        assert child.trace_flags == parent.trace_flags


@pytest.mark.unit
class TestExtraction:
    def test_header_lookup_is_case_insensitive(self):
        ctx = extract_trace_context({"Traceparent": VALID})

        assert ctx.trace_id == "4bf92f3577b34da6a3ce929d0e0e4736"

    def test_invalid_header_generates_fresh_context(self):
        ctx = extract_trace_context({"traceparent": "nope"})

        assert len(ctx.trace_id) == 32
        assert len(ctx.span_id) == 16

    def test_correlation_id_precedence(self):
        ctx = parse_traceparent(VALID)

        assert extract_correlation_id({"x-correlation-id": "hdr"}, ctx, "prop") == "hdr"
        assert extract_correlation_id({"X-Correlation-ID": b"raw"}, ctx, None) == "raw"
        assert extract_correlation_id({}, ctx, "prop") == "prop"
        assert extract_correlation_id(None, ctx) == ctx.trace_id


@pytest.mark.unit
class TestOpenTelemetryInterop:
    def test_matches_the_w3c_propagator(self):
        from opentelemetry import trace
        from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

        carrier = {"traceparent": VALID}
        expected = trace.get_current_span(TraceContextTextMapPropagator().extract(carrier)).get_span_context()

        ctx = extract_trace_context(carrier)

        assert ctx.to_span_context() == expected

    def test_parent_context_continues_the_inbound_trace(self):
        from opentelemetry import trace

        from notification_service.infra.tracing import context_from_trace

        span_context = trace.get_current_span(context_from_trace(parse_traceparent(VALID))).get_span_context()

        assert span_context.trace_id == 0x4BF92F3577B34DA6A3CE929D0E0E4736
        assert span_context.span_id == 0x00F067AA0BA902B7
        assert span_context.is_remote is True

    def test_outbound_context_is_a_child_without_local_span(self):
        from notification_service.infra.tracing import current_trace_context

        parent = parse_traceparent(VALID)
        outbound = current_trace_context(parent)

        assert outbound.trace_id == parent.trace_id
        assert outbound.span_id != parent.span_id
