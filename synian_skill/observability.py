"""
OpenTelemetry wiring for the Synian skill service.

HTTP server and client spans come from the FastAPI and httpx instrumentors.
This module adds the Synian-specific layer on top: spans around dispatch and
backend calls, auth and relay outcomes recorded both as counters and as
events on the active span, and trace ids merged into structlog output.
"""

from functools import wraps
from typing import Any, Callable, Dict, Optional

import structlog
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode

logger = structlog.get_logger()

tracer: Optional[trace.Tracer] = None

auth_attempt_counter: Optional[metrics.Counter] = None
relay_counter: Optional[metrics.Counter] = None
backend_duration: Optional[metrics.Histogram] = None

METRIC_EXPORT_INTERVAL_MS = 30000


def setup_observability(
    service_name: str = "synian-skill",
    service_version: str = "1.0.0",
    otlp_endpoint: Optional[str] = None,
    enable_console_export: bool = False
) -> None:
    """
    Set up OpenTelemetry tracing and the Synian metric instruments.

    Args:
        service_name: Name of the service for tracing
        service_version: Version of the service
        otlp_endpoint: OTLP endpoint for trace/metric export
        enable_console_export: Also print spans and metrics (development)
    """
    global tracer, auth_attempt_counter, relay_counter, backend_duration

    logger.info("Setting up observability", service_name=service_name, otlp_endpoint=otlp_endpoint)

    resource = Resource.create({"service.name": service_name, "service.version": service_version})

    span_exporters = []
    metric_exporters = []
    if otlp_endpoint:
        span_exporters.append(OTLPSpanExporter(endpoint=otlp_endpoint))
        metric_exporters.append(OTLPMetricExporter(endpoint=otlp_endpoint))
    if enable_console_export:
        span_exporters.append(ConsoleSpanExporter())
        metric_exporters.append(ConsoleMetricExporter())

    trace_provider = TracerProvider(resource=resource)
    for exporter in span_exporters:
        trace_provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer(__name__)

    readers = [
        PeriodicExportingMetricReader(exporter=exporter, export_interval_millis=METRIC_EXPORT_INTERVAL_MS)
        for exporter in metric_exporters
    ]
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=readers))
    meter = metrics.get_meter(__name__)

    auth_attempt_counter = meter.create_counter(
        name="synian_auth_attempts_total",
        description="Code submissions by outcome",
        unit="1"
    )
    relay_counter = meter.create_counter(
        name="synian_relay_turns_total",
        description="Relayed conversation turns by outcome",
        unit="1"
    )
    backend_duration = meter.create_histogram(
        name="synian_backend_call_duration_seconds",
        description="Synian Core round-trip duration in seconds",
        unit="s"
    )


def instrument_fastapi_app(app) -> None:
    """Instrument the app, outgoing httpx calls and stdlib logging."""
    if tracer is None:
        logger.warning("Tracer not initialized, call setup_observability() first")
        return

    FastAPIInstrumentor.instrument_app(app)
    HTTPXClientInstrumentor().instrument()
    LoggingInstrumentor().instrument(set_logging_format=True)


def add_trace_context(_logger, _method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor: attach the active span's trace and span ids."""
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        event_dict.setdefault("trace_id", f"{span_context.trace_id:032x}")
        event_dict.setdefault("span_id", f"{span_context.span_id:016x}")
    return event_dict


def trace_function(operation_name: str):
    """
    Run a coroutine function inside a span named ``operation_name``.

    Exceptions are recorded on the span and re-raised.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            if tracer is None:
                return await func(*args, **kwargs)

            with tracer.start_as_current_span(operation_name) as span:
                span.set_attribute("synian.operation", operation_name)
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    span.record_exception(e)
                    span.set_status(Status(StatusCode.ERROR, type(e).__name__))
                    raise

        return wrapper

    return decorator


def _span_event(name: str, attributes: Dict[str, str]) -> None:
    span = trace.get_current_span()
    if span.is_recording():
        span.add_event(name, attributes)


def record_auth_metrics(outcome: str, locale: Optional[str] = None) -> None:
    """
    Record the outcome of a code submission.

    Args:
        outcome: One of success, rejected, locked_out, blocked, unavailable,
            missing_code, incomplete_session
        locale: Request locale for attribution
    """
    attributes = {"outcome": outcome, "locale": locale or "unknown"}
    _span_event("synian.auth", attributes)
    if auth_attempt_counter is not None:
        auth_attempt_counter.add(1, attributes)


def record_relay_metrics(operation: str, outcome: str) -> None:
    """
    Record the outcome of a relayed turn.

    Args:
        operation: converse, command or exit
        outcome: replied, expired, backend_expired, unavailable,
            unauthenticated or missing_utterance
    """
    attributes = {"operation": operation, "outcome": outcome}
    _span_event("synian.relay", attributes)
    if relay_counter is not None:
        relay_counter.add(1, attributes)


def record_backend_metrics(operation: str, success: bool, processing_time: float) -> None:
    """Record a Synian Core round trip on the active span and the histogram."""
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attribute("synian.backend.success", success)
        span.set_attribute("synian.backend.duration_s", processing_time)
    if backend_duration is not None:
        backend_duration.record(processing_time, {"operation": operation, "success": str(success).lower()})
