"""
OpenTelemetry tracing for reading ingestion and collection.

The coordinator opens ``submit_reading`` and ``log_collection`` spans and
the API middleware opens one span per request; with tracing disabled the
global no-op tracer makes both free. ``add_trace_context`` stamps the
active span onto structlog lines for log-trace correlation.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.trace import StatusCode, Tracer
from opentelemetry.trace.propagation import get_current_span

logger = logging.getLogger(__name__)

_provider: TracerProvider | None = None


def setup_tracing(
    service_name: str,
    otlp_endpoint: str | None = None,
    *,
    environment: str | None = None,
    exporter: SpanExporter | None = None,
) -> TracerProvider:
    """
    Install the global TracerProvider once per process.

    The CLI group and the API lifespan both call this; the second call
    returns the provider installed by the first.

    Args:
        service_name: ``service.name`` resource attribute.
        otlp_endpoint: OTLP gRPC collector, defaults to localhost:4317.
        environment: ``deployment.environment`` resource attribute.
        exporter: Replaces OTLP (tests pass an InMemorySpanExporter).
    """
    global _provider

    if _provider is not None:
        return _provider

    attributes = {"service.name": service_name}
    if environment:
        attributes["deployment.environment"] = environment
    provider = TracerProvider(resource=Resource.create(attributes))

    if exporter is None:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
            OTLPSpanExporter,
        )

        provider.add_span_processor(
            BatchSpanProcessor(
                OTLPSpanExporter(
                    endpoint=otlp_endpoint or "http://localhost:4317",
                    insecure=True,
                )
            )
        )
    else:
        provider.add_span_processor(SimpleSpanProcessor(exporter))

    trace.set_tracer_provider(provider)
    _provider = provider
    logger.info(
        "Tracing initialized: service=%s endpoint=%s",
        service_name,
        otlp_endpoint or "(custom exporter)",
    )
    return provider


def get_tracer(name: str) -> Tracer:
    """Named tracer; a no-op one until ``setup_tracing`` has run."""
    return trace.get_tracer(name)


def is_tracing_enabled() -> bool:
    return _provider is not None


@contextmanager
def traced(
    tracer: Tracer,
    name: str,
    attributes: dict[str, Any] | None = None,
):
    """
    Span that records and re-raises any exception.

    ``None`` attribute values are skipped, so optional fields such as
    ``collected_by`` can be passed straight through.
    """
    with tracer.start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        try:
            yield span
        except Exception as exc:
            span.set_status(StatusCode.ERROR, str(exc))
            span.record_exception(exc)
            raise


def add_trace_context(
    logger_: Any, method: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor adding ``trace_id``/``span_id`` of the active span."""
    ctx = get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict["trace_id"] = f"{ctx.trace_id:032x}"
        event_dict["span_id"] = f"{ctx.span_id:016x}"
    return event_dict
