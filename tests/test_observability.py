from fastapi import FastAPI
from opentelemetry import trace

from assessment_engine import observability
from assessment_engine.observability import TRACER_NAME, get_tracer, init_otel


def otel_args(**overrides):
    args = dict(
        enabled=True,
        service_name="assessment-engine-test",
        otlp_endpoint=None,
        console_exporter=False,
        sample_rate=1.0,
        environment="test",
    )
    args.update(overrides)
    return args


def test_disabled_tracing_installs_nothing():
    assert init_otel(app=FastAPI(), **otel_args(enabled=False)) is None


def test_provider_is_installed_once_per_process(monkeypatch):
    monkeypatch.setattr(observability, "_provider", None)
    first = init_otel(app=FastAPI(), **otel_args())
    second = init_otel(app=FastAPI(), **otel_args(service_name="ignored"))

    assert first is not None
    assert second is first
    assert first.resource.attributes["service.name"] == "assessment-engine-test"
    assert first.resource.attributes["deployment.environment"] == "test"


def test_spans_open_without_exporters():
    with get_tracer().start_as_current_span("attempt.score") as span:
        span.set_attribute("test.id", "t-1")
        assert trace.get_current_span() is span
    assert TRACER_NAME == "assessment_engine"
