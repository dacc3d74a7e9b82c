"""
Observability module - Logging, Metrics, and Tracing.
"""

from licensegate.observability.logging import get_logger, log_context, setup_logging
from licensegate.observability.metrics import metrics
from licensegate.observability.tracing import setup_tracing, trace_operation

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "setup_tracing",
    "trace_operation",
]
