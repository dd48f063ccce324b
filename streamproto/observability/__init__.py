"""
streamproto - Observability Module

- Prometheus metrics for streams, frames and chunk errors
- Structured JSON logging with stream context injection

Usage:
    from streamproto.observability import get_logger, get_metrics

    logger = get_logger(__name__)
    metrics = get_metrics()
"""

from .logging import (
    JSONFormatter,
    LogContext,
    StructuredLogger,
    get_logger,
    log_context,
    setup_logging,
)
from .metrics import (
    StreamMetrics,
    get_metrics,
    metrics_endpoint,
    reset_metrics,
)

__all__ = [
    # Logging
    "JSONFormatter",
    "LogContext",
    "StructuredLogger",
    "get_logger",
    "log_context",
    "setup_logging",
    # Metrics
    "StreamMetrics",
    "get_metrics",
    "metrics_endpoint",
    "reset_metrics",
]
