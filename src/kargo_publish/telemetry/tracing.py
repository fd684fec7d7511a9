"""OpenTelemetry span helpers.

Every orchestration phase runs inside a span so that a configured OTel SDK
(via ``OTEL_*`` environment variables) sees build, push, discovery and wait
durations. Without an SDK the API's no-op tracer is used.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from kargo_publish.telemetry.sanitization import sanitize_error_message

if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.trace import Span, Tracer

_TRACER_NAME = "kargo_publish"

_tracer: Tracer | None = None
_lock = threading.Lock()


def get_tracer() -> Tracer:
    """Return the cached tracer, falling back to a NoOpTracer if OTel is broken."""
    global _tracer

    if _tracer is not None:
        return _tracer

    with _lock:
        if _tracer is None:
            try:
                _tracer = trace.get_tracer(_TRACER_NAME)
            except Exception:
                # OTel global state corrupted (common in test environments)
                _tracer = trace.NoOpTracer()
        return _tracer


def set_tracer(tracer: Tracer | None) -> None:
    """Set or clear the module tracer (for testing)."""
    global _tracer
    with _lock:
        _tracer = tracer


@contextmanager
def create_span(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Create a span as a context manager.

    Exceptions raised inside the block mark the span as failed with a
    sanitized message and are re-raised.

    Args:
        name: The name for the span.
        attributes: Optional attributes to set on the span. None values are skipped.

    Yields:
        The created span for additional attribute setting.

    Examples:
        >>> with create_span("kargo_publish.locate_freight", {"kargo.namespace": "ns"}):
        ...     pass
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(
        name,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        try:
            yield span
        except Exception as e:
            sanitized = sanitize_error_message(str(e))
            span.set_status(Status(StatusCode.ERROR, sanitized))
            span.set_attribute("exception.type", type(e).__name__)
            span.set_attribute("exception.message", sanitized)
            raise


__all__ = ["create_span", "get_tracer", "set_tracer"]
