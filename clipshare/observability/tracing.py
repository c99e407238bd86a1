# clipshare/observability/tracing.py
"""
OpenTelemetry tracing bootstrap.
- Initializes a TracerProvider with a Console exporter.
- Instruments the FastAPI app and the redis client library.
- Idempotent: safe to call multiple times (e.g. several apps in one test run).
"""
from __future__ import annotations

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

_OTEL_INITIALIZED = False


def init_tracing(settings, app: FastAPI | None = None) -> bool:
    """// initialize otel tracer (idempotent)

    Returns True when tracing is active after the call.
    """
    global _OTEL_INITIALIZED

    if not settings.TRACING_ENABLED:
        return False

    if not _OTEL_INITIALIZED:
        resource = Resource.create({"service.name": settings.SERVICE_NAME})
        provider = TracerProvider(resource=resource)
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
        trace.set_tracer_provider(provider)

        if settings.STORE_BACKEND == "redis":
            RedisInstrumentor().instrument()

        _OTEL_INITIALIZED = True

    if app is not None:
        FastAPIInstrumentor.instrument_app(app)

    return True
