"""Logging, tracing and redaction helpers."""

from __future__ import annotations

from kargo_publish.telemetry.logging import add_trace_context, configure_logging
from kargo_publish.telemetry.sanitization import (
    sanitize_error_message,
    sanitize_k8s_api_error,
)
from kargo_publish.telemetry.tracing import create_span, get_tracer, set_tracer

__all__ = [
    "add_trace_context",
    "configure_logging",
    "create_span",
    "get_tracer",
    "sanitize_error_message",
    "sanitize_k8s_api_error",
    "set_tracer",
]
