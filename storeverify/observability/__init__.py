"""
Observability module - Logging, Metrics, and Tracing.
"""

from storeverify.observability.logging import get_logger, log_context, setup_logging
from storeverify.observability.metrics import metrics, track_store_request
from storeverify.observability.tracing import get_tracer, trace_operation

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "track_store_request",
    "get_tracer",
    "trace_operation",
]
