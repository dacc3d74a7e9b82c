"""
OpenTelemetry tracing for the license and credential paths.

Disabled by default: most terminals run offline with no collector to export
to. When TRACING_ENABLED is set, HTTP requests, SQL statements and the
activation and revocation transactions are exported over OTLP.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span
from sqlalchemy.ext.asyncio import AsyncEngine

from licensegate.config import settings

_tracer = trace.get_tracer("licensegate")


def setup_tracing() -> None:
    """Install an OTLP-exporting tracer provider when tracing is enabled."""
    if not settings.tracing_enabled:
        return

    provider = TracerProvider(
        resource=Resource.create(
            {SERVICE_NAME: settings.service_name, SERVICE_VERSION: settings.api_version}
        )
    )
    provider.add_span_processor(
        BatchSpanProcessor(
            OTLPSpanExporter(endpoint=settings.otlp_endpoint, insecure=settings.otlp_insecure)
        )
    )
    trace.set_tracer_provider(provider)


def instrument_app(app: FastAPI) -> None:
    if settings.tracing_enabled:
        FastAPIInstrumentor.instrument_app(app)


def instrument_engine(engine: AsyncEngine) -> None:
    # The instrumentor hooks sync engine events; async engines expose one
    if settings.tracing_enabled:
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


def _attribute(value: Any) -> str | int | float | bool:
    return value if isinstance(value, (str, int, float, bool)) else str(value)


@contextmanager
def trace_operation(operation_name: str, **attributes: Any) -> Iterator[Span]:
    """
    Run a block inside a current span named after the operation.

    Attributes that are None are dropped. An exception escaping the block is
    recorded on the span and marks it as failed before propagating.

    Usage:
        with trace_operation("revocation", scope="install") as span:
            span.set_attribute("restaurant_id", str(restaurant_id))
    """
    with _tracer.start_as_current_span(
        operation_name,
        attributes={key: _attribute(value) for key, value in attributes.items() if value is not None},
        record_exception=True,
        set_status_on_exception=True,
    ) as span:
        yield span
