"""OpenTelemetry tracing for engine and session work.

Spans follow the OpenTelemetry database conventions: every span carries
``db.system=duckdb``, spans opened for a session carry its id, and a
SessionError escaping a span is recorded with its engine status.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from duck_session.domain.errors import SessionError

TRACER_NAME = "duck_session"

DB_SYSTEM = "duckdb"

SESSION_ID_ATTRIBUTE = "duck_session.session.id"
ERROR_STATUS_ATTRIBUTE = "duck_session.error.status"

_tracer: trace.Tracer | None = None


def setup_tracing(
    service_name: str = TRACER_NAME,
    otlp_endpoint: str | None = None,
    console_export: bool = False,
    database: str | None = None,
) -> trace.Tracer:
    """
    Install a tracer provider for the session library.

    Args:
        service_name: Service name reported to the collector
        otlp_endpoint: OTLP collector endpoint (e.g., "http://localhost:4317")
        console_export: Also print finished spans (for debugging)
        database: Database path recorded on the resource, if known

    Returns:
        The library tracer
    """
    global _tracer

    attributes: dict[str, Any] = {"service.name": service_name, "db.system": DB_SYSTEM}
    if database is not None:
        attributes["db.name"] = database
    provider = TracerProvider(resource=Resource.create(attributes))

    if otlp_endpoint:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
        )
    if console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer(TRACER_NAME)
    return _tracer


def get_tracer() -> trace.Tracer:
    """Get the library tracer (a no-op tracer until setup_tracing runs)."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(TRACER_NAME)
    return _tracer


def span_attributes(
    attributes: dict[str, Any] | None = None,
    session_id: int | None = None,
) -> dict[str, Any]:
    """Build span attributes with the database defaults filled in."""
    merged: dict[str, Any] = {"db.system": DB_SYSTEM}
    if session_id is not None:
        merged[SESSION_ID_ATTRIBUTE] = int(session_id)
    if attributes:
        merged.update(attributes)
    return merged


@contextmanager
def trace_span(
    name: str,
    attributes: dict[str, Any] | None = None,
    *,
    session_id: int | None = None,
) -> Generator[trace.Span, None, None]:
    """
    Context manager for a span around engine work.

    Args:
        name: Name of the span
        attributes: Extra attributes for the span
        session_id: Session the work runs on, if any

    Yields:
        The created span
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(
        name, attributes=span_attributes(attributes, session_id)
    ) as span:
        try:
            yield span
        except SessionError as exc:
            span.set_attribute(ERROR_STATUS_ATTRIBUTE, exc.status or type(exc).__name__)
            raise
