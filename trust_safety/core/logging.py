"""Structured logging with correlation IDs.

Report submission, moderator actions and appeal reviews each run inside
``correlation_scope`` so that the queue mutation, the penalty and the audit
entry one flow produced share a single ID in the log stream.
"""

import json
import logging
import sys
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from trust_safety.core.config import Settings, settings as default_settings
from trust_safety.core.tracing import get_span_id, get_trace_id

# Handler name used to find the handler installed by setup_logging
HANDLER_NAME = "trust_safety"

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

_RESERVED_RECORD_KEYS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "taskName",
})


def get_correlation_id() -> str:
    """Get the ID of the flow running in this context.

    Outside a scope the active trace ID is used, or a throwaway ID when no
    span is recording. Neither is stored.
    """
    cid = correlation_id_var.get()
    if cid is not None:
        return cid
    return get_trace_id() or str(uuid.uuid4())


def set_correlation_id(correlation_id: str) -> None:
    """Pin the correlation ID for the current context.

    Embedding applications call this at their request boundary; scopes
    opened afterwards reuse the pinned ID.
    """
    correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    correlation_id_var.set(None)


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Run a moderation flow under one correlation ID.

    An ID already active in the context is kept unless a new one is passed
    explicitly, so an automatic penalty applied while a report is being
    submitted logs under the report's ID.

    Yields:
        The active correlation ID
    """
    current = correlation_id_var.get()
    if correlation_id is None and current is not None:
        yield current
        return

    cid = correlation_id or str(uuid.uuid4())
    token = correlation_id_var.set(cid)
    try:
        yield cid
    finally:
        correlation_id_var.reset(token)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, tagged with correlation and trace IDs."""

    def __init__(self, include_stack_trace: bool = True, include_extra_fields: bool = True):
        super().__init__()
        self.include_stack_trace = include_stack_trace
        self.include_extra_fields = include_extra_fields

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
        }

        trace_id = get_trace_id()
        if trace_id:
            payload["trace_id"] = trace_id
            payload["span_id"] = get_span_id()

        payload["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        if record.exc_info and self.include_stack_trace:
            exc_type, exc_value, exc_tb = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "stack_trace": traceback.format_exception(*record.exc_info) if exc_tb else None,
            }

        if self.include_extra_fields:
            extra = {
                key: self._jsonable(value)
                for key, value in record.__dict__.items()
                if key not in _RESERVED_RECORD_KEYS and key != "correlation_id"
            }
            if extra:
                payload["extra"] = extra

        return json.dumps(payload, default=str)

    @staticmethod
    def _jsonable(value: Any) -> Any:
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            return str(value)
        return value


class CorrelationIdFilter(logging.Filter):
    """Stamps the current correlation ID onto records that lack one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = get_correlation_id()
        return True


def setup_logging(
    config: Optional[Settings] = None,
    include_stack_trace: bool = True,
) -> logging.Handler:
    """Install the library's stdout handler on the root logger.

    Level and format come from LOG_LEVEL and LOG_JSON. Calling it again
    replaces the previously installed handler and leaves other handlers
    alone.

    Args:
        config: Settings to read (module settings if omitted)
        include_stack_trace: Include stack traces in JSON error records

    Returns:
        The installed handler
    """
    config = config or default_settings
    level = logging.getLevelName(config.LOG_LEVEL.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {config.LOG_LEVEL}")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        if handler.get_name() == HANDLER_NAME:
            root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())
    if config.LOG_JSON:
        handler.setFormatter(StructuredFormatter(include_stack_trace=include_stack_trace))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] - %(message)s"
        ))

    root_logger.setLevel(level)
    root_logger.addHandler(handler)
    logging.getLogger("opentelemetry").setLevel(logging.WARNING)
    return handler


def log_error(
    logger: logging.Logger,
    message: str,
    exception: Optional[BaseException] = None,
    **extra: Any,
) -> None:
    """Log an error with correlation ID and optional exception.

    Args:
        logger: Logger instance
        message: Error message
        exception: Optional exception to log
        **extra: Additional context fields
    """
    extra["correlation_id"] = get_correlation_id()
    logger.error(message, exc_info=exception, extra=extra)


def log_warning(logger: logging.Logger, message: str, **extra: Any) -> None:
    extra["correlation_id"] = get_correlation_id()
    logger.warning(message, extra=extra)


def log_info(logger: logging.Logger, message: str, **extra: Any) -> None:
    extra["correlation_id"] = get_correlation_id()
    logger.info(message, extra=extra)
