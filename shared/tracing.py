"""OpenTelemetry tracing setup and span helpers."""

import os
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span, Status, StatusCode

TRACER_NAME = "candidate_details"

_provider: Optional[TracerProvider] = None


def otlp_exporter_options(endpoint: Optional[str] = None) -> Dict[str, Any]:
    """
    Keyword arguments for the OTLP gRPC exporter.

    An explicit endpoint wins over the standard ``OTEL_EXPORTER_OTLP_*``
    variables. Plain-http endpoints are dialled without TLS.
    """
    endpoint = (
        endpoint
        or os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")
        or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
        or "http://localhost:4317"
    )
    options: Dict[str, Any] = {"endpoint": endpoint, "insecure": endpoint.startswith("http://")}

    pairs = (item.split("=", 1) for item in os.getenv("OTEL_EXPORTER_OTLP_HEADERS", "").split(",") if "=" in item)
    headers = {key.strip(): value.strip() for key, value in pairs if key.strip()}
    if headers:
        options["headers"] = headers
    return options


def configure_tracing(service_name: str, otel_exporter: Optional[str] = None,
                      enable_console: bool = False) -> TracerProvider:
    """Install the global tracer provider once per process and instrument httpx."""
    global _provider
    if _provider is not None:
        return _provider

    resource = Resource.create({
        "service.name": service_name,
        "service.version": "1.0.0",
        "deployment.environment": os.getenv("ACCESS_ENV", "local"),
    })
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**otlp_exporter_options(otel_exporter))))
    if enable_console:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    HTTPXClientInstrumentor().instrument()
    _provider = provider
    return provider


def instrument_app(app: FastAPI) -> None:
    """Create a server span per request on ``app``."""
    FastAPIInstrumentor.instrument_app(app, excluded_urls="health,metrics")


@contextmanager
def trace_operation(operation_name: str, **attributes) -> Iterator[Span]:
    """Run a block inside a child span; exceptions mark the span as failed."""
    tracer = trace.get_tracer(TRACER_NAME)
    with tracer.start_as_current_span(operation_name, record_exception=False) as span:
        add_span_attributes(span, **attributes)
        try:
            yield span
        except Exception as exc:
            span.record_exception(exc)
            span.set_status(Status(StatusCode.ERROR, f"{type(exc).__name__}: {exc}"))
            raise


def add_span_attributes(span: Optional[Span] = None, **attributes) -> None:
    """Set attributes on ``span`` (default: current span), skipping None values."""
    span = span or trace.get_current_span()
    if not span.is_recording():
        return
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(key, value)
