from __future__ import annotations

import logging
from typing import Iterator, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
TRACER_NAME = "assessment_engine"

_provider: Optional[TracerProvider] = None


def init_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def _span_processors(otlp_endpoint: Optional[str], console_exporter: bool) -> Iterator[SpanProcessor]:
    if console_exporter:
        yield SimpleSpanProcessor(ConsoleSpanExporter())
    if otlp_endpoint:
        yield BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint))


def init_otel(
    *,
    app: object,
    enabled: bool,
    service_name: str,
    otlp_endpoint: Optional[str],
    console_exporter: bool,
    sample_rate: float,
    environment: str = "dev",
) -> Optional[TracerProvider]:
    """Trace inbound requests, evaluator calls, scoring and declaration drains.

    The provider is process-wide and installed on the first call; every app
    built afterwards is only instrumented. Returns the active SDK provider, or
    None when tracing is disabled (spans from ``get_tracer`` are then no-ops).
    """
    global _provider
    if not enabled:
        return None

    if _provider is None:
        resource = Resource.create({"service.name": service_name, "deployment.environment": environment})
        provider = TracerProvider(resource=resource, sampler=ParentBased(TraceIdRatioBased(sample_rate)))
        for processor in _span_processors(otlp_endpoint, console_exporter):
            provider.add_span_processor(processor)
        trace.set_tracer_provider(provider)
        HTTPXClientInstrumentor().instrument()
        _provider = provider

    FastAPIInstrumentor.instrument_app(app)  # type: ignore[arg-type]
    return _provider


def get_tracer() -> trace.Tracer:
    return trace.get_tracer(TRACER_NAME)
