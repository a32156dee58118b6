"""Observability infrastructure for the listing pipeline.

Provides structured logging and metrics collection.
"""

from .logger import LogContext, get_logger, log_context, setup_logging
from .metrics import CollectionMetrics, MetricsCollector, RequestStats

__all__ = [
    "LogContext",
    "get_logger",
    "log_context",
    "setup_logging",
    "CollectionMetrics",
    "MetricsCollector",
    "RequestStats",
]
