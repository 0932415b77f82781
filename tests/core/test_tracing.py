"""Tests for tracing setup and span helpers."""

import uuid

import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from trust_safety.core.config import Settings
from trust_safety.core.logging import get_correlation_id
from trust_safety.core.tracing import (
    create_span,
    get_span_id,
    get_trace_id,
    get_tracer,
    record_exception,
    setup_tracing,
    shutdown_tracing,
)
from trust_safety.modules.classification.service import ModerationResultBuilder


@pytest.fixture
def exporter():
    span_exporter = InMemorySpanExporter()
    setup_tracing(Settings(ENVIRONMENT="test"), exporter=span_exporter)
    yield span_exporter
    shutdown_tracing()


class TestSetupTracing:
    """Tests for the library's tracer provider."""

    def test_spans_reach_the_exporter(self, exporter):
        with create_span("moderation.test", {"content.id": "abc"}):
            trace_id = get_trace_id()
            span_id = get_span_id()
            correlation_id = get_correlation_id()

        spans = exporter.get_finished_spans()
        assert [span.name for span in spans] == ["moderation.test"]
        assert spans[0].attributes["content.id"] == "abc"
        assert spans[0].resource.attributes["deployment.environment"] == "test"
        assert trace_id == format(spans[0].context.trace_id, "032x")
        assert span_id == format(spans[0].context.span_id, "016x")
        assert correlation_id == trace_id

    def test_recorded_exception_marks_span_failed(self, exporter):
        with create_span("moderation.failing"):
            record_exception(TimeoutError("classifier slow"), {"failure.reason": "timeout"})

        span = exporter.get_finished_spans()[0]
        assert span.status.status_code == StatusCode.ERROR
        assert span.events[0].name == "exception"

    @pytest.mark.asyncio
    async def test_classification_is_traced(self, exporter):
        builder = ModerationResultBuilder(settings=Settings())

        result = await builder.moderate_text(uuid.uuid4(), "What a lovely afternoon at the park")

        span = exporter.get_finished_spans()[0]
        assert span.name == "moderation.classify"
        assert span.attributes["moderation.status"] == result.status.value

    def test_no_ids_without_a_recording_span(self):
        shutdown_tracing()

        with create_span("moderation.untraced"):
            assert get_trace_id() is None
            assert get_span_id() is None

        assert get_tracer() is not None
