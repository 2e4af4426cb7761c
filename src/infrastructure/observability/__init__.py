"""Observability module providing structlog configuration and OpenTelemetry tracing."""

from src.infrastructure.observability.setup import (
    configure_logging,
    init_observability,
    shutdown_observability,
)
from src.infrastructure.observability.structlog_processor import add_trace_context
from src.infrastructure.observability.tracing import (
    add_span_attributes,
    get_tracer,
    traced,
)

__all__ = [
    "add_span_attributes",
    "add_trace_context",
    "configure_logging",
    "get_tracer",
    "init_observability",
    "shutdown_observability",
    "traced",
]
