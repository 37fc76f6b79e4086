"""
Tests for the Synian tracing helpers.
"""

from unittest.mock import Mock, patch

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from synian_skill import observability
from synian_skill.errors import BackendUnavailable


@pytest.fixture
def exporter():
    """Route spans from the module tracer into memory."""
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    with patch.object(observability, "tracer", provider.get_tracer("test")):
        yield exporter


class TestTraceFunction:
    """Test cases for the trace_function decorator."""

    @pytest.mark.asyncio
    async def test_untraced_without_setup(self):
        @observability.trace_function("noop")
        async def handler(value):
            return value * 2

        with patch.object(observability, "tracer", None):
            assert await handler(21) == 42

    @pytest.mark.asyncio
    async def test_outcomes_become_span_events(self, exporter):
        @observability.trace_function("dispatch_intent")
        async def handler():
            observability.record_auth_metrics("locked_out", "es-MX")
            observability.record_relay_metrics("exit", "replied")
            return "ok"

        assert await handler() == "ok"

        (span,) = exporter.get_finished_spans()
        assert span.name == "dispatch_intent"
        assert span.attributes["synian.operation"] == "dispatch_intent"
        assert [event.name for event in span.events] == ["synian.auth", "synian.relay"]
        assert span.events[0].attributes["outcome"] == "locked_out"
        assert span.events[0].attributes["locale"] == "es-MX"

    @pytest.mark.asyncio
    async def test_failure_marks_span(self, exporter):
        @observability.trace_function("synian_core.call_backend")
        async def handler():
            observability.record_backend_metrics("converse", False, 0.25)
            raise BackendUnavailable("converse", "ReadTimeout")

        with pytest.raises(BackendUnavailable):
            await handler()

        (span,) = exporter.get_finished_spans()
        assert span.status.status_code == StatusCode.ERROR
        assert span.attributes["synian.backend.success"] is False
        assert any(event.name == "exception" for event in span.events)


class TestRecorders:
    """Test cases for counters and log context."""

    def test_counters_used_when_configured(self):
        counter = Mock()
        with patch.object(observability, "auth_attempt_counter", counter):
            observability.record_auth_metrics("success")

        counter.add.assert_called_once_with(1, {"outcome": "success", "locale": "unknown"})

    def test_recorders_are_noops_without_setup(self):
        with patch.object(observability, "auth_attempt_counter", None), \
                patch.object(observability, "relay_counter", None), \
                patch.object(observability, "backend_duration", None):
            observability.record_auth_metrics("rejected")
            observability.record_relay_metrics("converse", "replied")
            observability.record_backend_metrics("converse", True, 0.1)

    @pytest.mark.asyncio
    async def test_trace_ids_added_to_log_events(self, exporter):
        captured = {}

        @observability.trace_function("alexa_webhook")
        async def handler():
            captured.update(observability.add_trace_context(None, "info", {"event": "hello"}))

        await handler()

        (span,) = exporter.get_finished_spans()
        assert captured["trace_id"] == f"{span.context.trace_id:032x}"
        assert captured["span_id"] == f"{span.context.span_id:016x}"

    def test_no_trace_ids_outside_spans(self):
        event = observability.add_trace_context(None, "info", {"event": "hello"})
        assert event == {"event": "hello"}
