"""Observability for the premium desk.

JSON logging with PII masking, health/readiness endpoints and in-process
metrics, all without an external collector.
"""
import uuid
from typing import Optional

from . import logging as logging_module
from . import health
from . import metrics


def generate_trace_id() -> str:
    """Generate a new trace ID for request/worker context."""
    return str(uuid.uuid4())


def set_trace_id(trace_id: Optional[str] = None) -> str:
    """Set or generate trace ID for the current thread and return it."""
    if not trace_id:
        trace_id = generate_trace_id()
    logging_module.set_trace_id(trace_id)
    return trace_id


def init_observability(enable_metrics: bool = True) -> None:
    """Initialize all observability components."""
    logging_module.init_logging()
    if enable_metrics:
        metrics.init_metrics()


__all__ = [
    "logging_module",
    "health",
    "metrics",
    "generate_trace_id",
    "set_trace_id",
    "init_observability",
]
