"""Unit tests for span helpers."""

from __future__ import annotations

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from duck_session.domain.errors import ExecutionError
from duck_session.infrastructure import tracing


@pytest.fixture
def exporter(monkeypatch: pytest.MonkeyPatch) -> InMemorySpanExporter:
    """Route library spans into memory without touching the global provider."""
    memory = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(memory))
    monkeypatch.setattr(tracing, "_tracer", provider.get_tracer(tracing.TRACER_NAME))
    return memory


@pytest.mark.unit
class TestSpanAttributes:
    """Tests for attribute defaults."""

    def test_defaults(self) -> None:
        assert tracing.span_attributes() == {"db.system": "duckdb"}

    def test_session_and_extra_attributes(self) -> None:
        attributes = tracing.span_attributes({"db.operation": "select"}, session_id=3)

        assert attributes == {
            "db.system": "duckdb",
            tracing.SESSION_ID_ATTRIBUTE: 3,
            "db.operation": "select",
        }


@pytest.mark.unit
class TestTraceSpan:
    """Tests for trace_span."""

    def test_span_carries_session(self, exporter: InMemorySpanExporter) -> None:
        with tracing.trace_span("session.execute", {"db.operation": "select"}, session_id=7):
            pass

        (span,) = exporter.get_finished_spans()
        assert span.name == "session.execute"
        assert span.attributes["db.system"] == "duckdb"
        assert span.attributes[tracing.SESSION_ID_ATTRIBUTE] == 7

    def test_session_error_records_status(self, exporter: InMemorySpanExporter) -> None:
        with pytest.raises(ExecutionError):
            with tracing.trace_span("appender.flush"):
                raise ExecutionError("constraint violated", "ConstraintException")

        (span,) = exporter.get_finished_spans()
        assert span.attributes[tracing.ERROR_STATUS_ATTRIBUTE] == "ConstraintException"
        assert not span.status.is_ok
