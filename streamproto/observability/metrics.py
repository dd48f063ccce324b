"""
streamproto - Prometheus Metrics

Metrics exposed:
- streamproto_streams_started_total: Counter of streams that received a first chunk
- streamproto_streams_completed_total: Counter of streams that reached a stop frame, by finish reason
- streamproto_frames_total: Counter of emitted canonical frames, by event kind
- streamproto_chunk_errors_total: Counter of chunks converted into error frames, by error type

Usage:
    from streamproto.observability.metrics import get_metrics, metrics_endpoint

    metrics = get_metrics()
    metrics.record_frame("text")

    @app.get("/metrics")
    async def metrics():
        return metrics_endpoint()
"""

from typing import Optional

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    generate_latest,
)


class StreamMetrics:
    """
    Metrics collector for the stream normalizer.

    Singleton for the default registry; pass a fresh CollectorRegistry
    to get an isolated collector (tests).
    """

    _instance: Optional["StreamMetrics"] = None

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry

        self.streams_started = Counter(
            "streamproto_streams_started_total",
            "Streams that received their first chunk",
            registry=registry,
        )

        self.streams_completed = Counter(
            "streamproto_streams_completed_total",
            "Streams that reached a termination signal",
            labelnames=["finish_reason"],
            registry=registry,
        )

        self.frames_total = Counter(
            "streamproto_frames_total",
            "Canonical frames emitted",
            labelnames=["event"],
            registry=registry,
        )

        self.chunk_errors = Counter(
            "streamproto_chunk_errors_total",
            "Chunks that could not be classified",
            labelnames=["error_type"],
            registry=registry,
        )

    @classmethod
    def get_instance(cls) -> "StreamMetrics":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls):
        """Reset singleton (for testing)."""
        if cls._instance is not None and cls._instance.registry is REGISTRY:
            for collector in (
                cls._instance.streams_started,
                cls._instance.streams_completed,
                cls._instance.frames_total,
                cls._instance.chunk_errors,
            ):
                REGISTRY.unregister(collector)
        cls._instance = None

    def record_stream_started(self):
        self.streams_started.inc()

    def record_stream_completed(self, finish_reason: str):
        self.streams_completed.labels(finish_reason=finish_reason).inc()

    def record_frame(self, event: str):
        self.frames_total.labels(event=event).inc()

    def record_chunk_error(self, error_type: str):
        self.chunk_errors.labels(error_type=error_type).inc()


def get_metrics() -> StreamMetrics:
    """Get the global metrics collector."""
    return StreamMetrics.get_instance()


def reset_metrics() -> None:
    """Reset the global metrics collector (for testing)."""
    StreamMetrics.reset_instance()


def metrics_endpoint(registry: CollectorRegistry = REGISTRY) -> Response:
    """
    Create a FastAPI response with Prometheus metrics.

    Usage:
        @app.get("/metrics")
        async def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(registry),
        media_type=CONTENT_TYPE_LATEST,
    )
