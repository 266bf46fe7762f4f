"""
Observability Module

Provides tracing, metrics collection, and structured logging for storage
operations.
"""

from .tracing import (
    init_tracing,
    get_tracer,
    get_current_span,
    get_trace_id,
    create_span,
)
from .metrics import (
    init_metrics,
    get_meter,
    record_counter,
    record_histogram,
    OPERATION_DURATION,
    STORED_BYTES,
    LOCK_ACQUISITIONS,
)
from .logging import configure_logging, StructuredFormatter

__all__ = [
    # Tracing
    "init_tracing",
    "get_tracer",
    "get_current_span",
    "get_trace_id",
    "create_span",
    # Metrics
    "init_metrics",
    "get_meter",
    "record_counter",
    "record_histogram",
    "OPERATION_DURATION",
    "STORED_BYTES",
    "LOCK_ACQUISITIONS",
    # Logging
    "configure_logging",
    "StructuredFormatter",
]
