"""OpenTelemetry tracing for classification and moderation flows.

The tracer provider built by ``setup_tracing`` is private to this library;
the process-wide provider is never replaced. Until tracing is set up, spans
come from the global provider, which is a no-op unless the embedding
application installed one.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.trace import Span, Status, StatusCode

from trust_safety.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

INSTRUMENTATION_NAME = "trust_safety"

_tracer: Optional[trace.Tracer] = None
_provider: Optional[TracerProvider] = None


def setup_tracing(
    config: Optional[Settings] = None,
    exporter: Optional[SpanExporter] = None,
) -> trace.Tracer:
    """Build the library's tracer provider.

    Args:
        config: Settings with PROJECT_NAME, VERSION, ENVIRONMENT and
            TRACING_CONSOLE_EXPORT (module settings if omitted)
        exporter: Exporter that receives every finished span synchronously

    Returns:
        The tracer used by create_span
    """
    global _tracer, _provider
    config = config or default_settings

    if _provider is not None:
        shutdown_tracing()

    _provider = TracerProvider(resource=Resource.create({
        SERVICE_NAME: config.PROJECT_NAME,
        SERVICE_VERSION: config.VERSION,
        "deployment.environment": config.ENVIRONMENT,
    }))
    if exporter is not None:
        _provider.add_span_processor(SimpleSpanProcessor(exporter))
    if config.TRACING_CONSOLE_EXPORT:
        _provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    _tracer = _provider.get_tracer(INSTRUMENTATION_NAME, config.VERSION)
    logger.info(f"Tracing initialized for {config.PROJECT_NAME} ({config.ENVIRONMENT})")
    return _tracer


def get_tracer() -> trace.Tracer:
    if _tracer is None:
        return trace.get_tracer(INSTRUMENTATION_NAME)
    return _tracer


def _valid_span_context():
    context = trace.get_current_span().get_span_context()
    return context if context.is_valid else None


def get_trace_id() -> Optional[str]:
    """Hex trace ID of the recording span, or None."""
    context = _valid_span_context()
    return format(context.trace_id, "032x") if context else None


def get_span_id() -> Optional[str]:
    """Hex span ID of the recording span, or None."""
    context = _valid_span_context()
    return format(context.span_id, "016x") if context else None


@contextmanager
def create_span(
    name: str,
    attributes: Optional[dict] = None,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL,
) -> Iterator[Span]:
    """Open a span around a block.

    Exceptions escaping the block are recorded on the span by the SDK.
    """
    with get_tracer().start_as_current_span(
        name,
        kind=kind,
        attributes=attributes or {},
    ) as span:
        yield span


def add_span_attributes(attributes: dict) -> None:
    span = trace.get_current_span()
    for key, value in attributes.items():
        span.set_attribute(key, value)


def record_exception(exception: BaseException, attributes: Optional[dict] = None) -> None:
    """Record a handled exception on the current span and mark it failed."""
    span = trace.get_current_span()
    span.record_exception(exception, attributes=attributes)
    span.set_status(Status(StatusCode.ERROR, str(exception)))


def shutdown_tracing() -> None:
    """Flush pending spans and drop the library's provider."""
    global _provider, _tracer
    if _provider is not None:
        _provider.shutdown()
    _provider = None
    _tracer = None
