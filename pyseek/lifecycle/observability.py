"""Query tracing.

Every store call made by a Document is wrapped in ``track_query``. While
tracing is enabled each call produces one QueryEvent, timed across all of its
retry attempts, which is logged when slow, handed to listeners, kept in a
bounded buffer on request and exported as an OpenTelemetry span when that
library is importable.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable

logger = logging.getLogger("pyseek")

Listener = Callable[["QueryEvent"], Any]


@dataclass(frozen=True)
class QueryEvent:
    """One store operation as seen by the caller."""

    operation: str
    collection: str
    filter: dict[str, Any] | None = None
    update: dict[str, Any] | None = None
    duration_ms: float = 0.0
    result_count: int | None = None
    document_class: str = ""
    retries: int = 0
    error: str | None = None
    store: str = ""

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class _TracingState:
    enabled: bool = False
    slow_query_ms: float = 100.0
    capture_events: bool = False
    listeners: list[Listener] = field(default_factory=list)
    events: deque[QueryEvent] = field(default_factory=lambda: deque(maxlen=1000))

    def reset(self) -> None:
        self.enabled = False
        self.slow_query_ms = 100.0
        self.capture_events = False
        self.listeners.clear()
        self.events = deque(maxlen=1000)


_state = _TracingState()


def enable_tracing(
    slow_query_ms: float = 100.0,
    capture_events: bool = False,
    max_events: int | None = 1000,
) -> None:
    """Turn tracing on.

    Args:
        slow_query_ms: Operations slower than this are logged at WARNING
        capture_events: Keep events for get_events()
        max_events: Size of the capture buffer; None keeps everything
    """
    _state.enabled = True
    _state.slow_query_ms = slow_query_ms
    _state.capture_events = capture_events
    _state.events = deque(_state.events, maxlen=max_events)


def disable_tracing() -> None:
    """Turn tracing off and drop listeners and captured events."""
    _state.reset()


def get_events() -> list[QueryEvent]:
    return list(_state.events)


def clear_events() -> None:
    _state.events.clear()


def add_listener(callback: Listener) -> None:
    """Call ``callback(event)`` after every traced operation."""
    _state.listeners.append(callback)


def remove_listener(callback: Listener) -> None:
    _state.listeners.remove(callback)


def emit_event(event: QueryEvent) -> None:
    if not _state.enabled:
        return

    if _state.capture_events:
        _state.events.append(event)

    if event.duration_ms > _state.slow_query_ms:
        logger.warning(
            "Slow query: %s on %s took %.1fms with %d retries (threshold: %.1fms)",
            event.operation,
            event.collection,
            event.duration_ms,
            event.retries,
            _state.slow_query_ms,
        )

    for listener in _state.listeners:
        listener(event)

    _try_emit_otel_span(event)


def _try_emit_otel_span(event: QueryEvent) -> None:
    try:
        from opentelemetry import trace
    except ImportError:
        return

    tracer = trace.get_tracer("pyseek")
    with tracer.start_as_current_span(f"pyseek.{event.operation}") as span:
        span.set_attribute("db.system", event.store or "unknown")
        span.set_attribute("db.collection", event.collection)
        span.set_attribute("db.operation", event.operation)
        span.set_attribute("db.duration_ms", event.duration_ms)
        span.set_attribute("pyseek.retries", event.retries)
        if event.result_count is not None:
            span.set_attribute("db.result_count", event.result_count)
        if event.error is not None:
            span.set_status(trace.Status(trace.StatusCode.ERROR, event.error))


@asynccontextmanager
async def track_query(
    operation: str,
    collection: str,
    document_class: str = "",
    filter: dict | None = None,
    update: dict | None = None,
    store: str = "",
) -> AsyncIterator[dict[str, Any]]:
    """Time the enclosed store call and emit a QueryEvent.

    The yielded dict lets the caller report ``result_count`` and ``retries``.
    Errors are recorded by type name and re-raised.
    """
    ctx: dict[str, Any] = {"result_count": None, "retries": 0}
    if not _state.enabled:
        yield ctx
        return

    start = time.perf_counter()
    error: str | None = None
    try:
        yield ctx
    except Exception as e:
        error = type(e).__name__
        raise
    finally:
        emit_event(
            QueryEvent(
                operation=operation,
                collection=collection,
                filter=filter,
                update=update,
                duration_ms=(time.perf_counter() - start) * 1000,
                result_count=ctx["result_count"],
                document_class=document_class,
                retries=ctx["retries"],
                error=error,
                store=store,
            )
        )
