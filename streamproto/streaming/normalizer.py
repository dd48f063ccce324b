"""
streamproto - Stream Normalizer

Converts a provider-shaped chunk sequence into canonical frames.

Ensures consistent output regardless of source provider:
- Same frame structure and event kinds
- Strict chunk arrival order, content before stop
- Tool call fragments forwarded per chunk with structural defaults
- Malformed chunks surface as inline error frames, never as aborts

Usage:
    callbacks = StreamCallbacks(on_text=print)

    async for block in normalize_stream(openai_chunks, callbacks):
        yield block

    # Or one chunk at a time:
    normalizer = StreamNormalizer(callbacks)
    for chunk in chunks:
        for frame in normalizer.process(chunk):
            send(frame.to_sse())
"""

import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    Callable,
    Iterable,
    Iterator,
    List,
    Optional,
    Union,
)

from ..config import NormalizerSettings, get_settings
from ..observability.logging import LogContext, get_logger, log_context
from ..observability.metrics import StreamMetrics, get_metrics
from .classify import (
    ChunkClassification,
    DataDelta,
    NoDelta,
    TextDelta,
    ToolCallsDelta,
    classify_chunk_safely,
)
from .errors import ChunkFailure
from .protocol import EventKind, Frame, encode_frame, has_line_break

logger = get_logger(__name__)


class StreamPhase(str, Enum):
    """Dispatcher lifecycle."""
    AWAITING_FIRST = "awaiting_first"
    STREAMING = "streaming"
    TERMINATED = "terminated"


@dataclass
class StreamCallbacks:
    """
    Optional observer hooks, invoked synchronously as frames are emitted.

    on_start():            first chunk of the stream
    on_text(text):         every text frame
    on_token(data):        every content frame (text, tool_calls, data)
    on_tool_call(calls):   every tool_calls frame, with the normalized array
    on_completion(reason): first stop frame of the stream
    on_usage(usage):       every chunk carrying token usage (no frame)
    """
    on_start: Optional[Callable[[], Any]] = None
    on_text: Optional[Callable[[str], Any]] = None
    on_token: Optional[Callable[[Any], Any]] = None
    on_tool_call: Optional[Callable[[List[dict]], Any]] = None
    on_completion: Optional[Callable[[str], Any]] = None
    on_usage: Optional[Callable[[dict], Any]] = None


class StreamNormalizer:
    """
    Per-stream dispatcher: AWAITING_FIRST -> STREAMING -> TERMINATED.

    One instance per stream. Instances share no mutable state, so
    independent streams need no locking.
    """

    def __init__(
        self,
        callbacks: Optional[StreamCallbacks] = None,
        *,
        correlation_id: Optional[str] = None,
        settings: Optional[NormalizerSettings] = None,
        metrics: Optional[StreamMetrics] = None,
        provider: str = "",
        model: str = "",
    ):
        if correlation_id and has_line_break(correlation_id):
            raise ValueError(f"Correlation id contains a line break: {correlation_id!r}")

        self.settings = settings or get_settings()
        self.callbacks = callbacks or StreamCallbacks()
        self.correlation_id = correlation_id or f"{self.settings.id_prefix}{uuid.uuid4().hex[:12]}"
        self.provider = provider
        self.model = model

        if metrics is None and self.settings.metrics_enabled:
            metrics = get_metrics()
        self.metrics = metrics

        self.phase = StreamPhase.AWAITING_FIRST
        self.finish_reason: Optional[str] = None
        self.chunks_processed = 0
        self.frames_emitted = 0
        self.error_count = 0
        self.log_context: Optional[LogContext] = None

    # ============================================================
    # Dispatch
    # ============================================================

    def process(self, chunk: Any) -> List[Frame]:
        """
        Process one raw chunk and return its frames in emission order.

        A malformed chunk yields exactly one error frame.
        """
        if self.phase == StreamPhase.AWAITING_FIRST:
            self._start()

        self.chunks_processed += 1
        result = classify_chunk_safely(chunk, self.correlation_id)

        if isinstance(result, ChunkFailure):
            return [self._failure_frame(result)]

        self.correlation_id = result.correlation_id
        if self.log_context is not None:
            self.log_context.stream_id = self.correlation_id
        frames = []

        content = self._content_frame(result)
        if content is not None:
            frames.append(content)

        if result.finish_reason is not None:
            frames.append(self._stop_frame(result.finish_reason))

        # usage is telemetry, reported to the hook only
        if result.usage is not None:
            self._fire("on_usage", result.usage)

        return frames

    def _start(self):
        self.phase = StreamPhase.STREAMING
        if self.metrics:
            self.metrics.record_stream_started()
        logger.debug(
            "Stream started",
            correlation_id=self.correlation_id,
            provider=self.provider,
            model=self.model,
        )
        self._fire("on_start")

    def _content_frame(self, result: ChunkClassification) -> Optional[Frame]:
        delta = result.delta

        if isinstance(delta, NoDelta):
            return None

        if isinstance(delta, TextDelta):
            frame = self._emit(EventKind.TEXT, delta.text)
            self._fire("on_text", delta.text)
        elif isinstance(delta, ToolCallsDelta):
            frame = self._emit(EventKind.TOOL_CALLS, delta.tool_calls)
            self._fire("on_tool_call", delta.tool_calls)
        elif isinstance(delta, DataDelta):
            frame = self._emit(EventKind.DATA, delta.payload)
        else:
            raise TypeError(f"Unhandled delta variant: {type(delta).__name__}")

        self._fire("on_token", frame.data)
        return frame

    def _stop_frame(self, finish_reason: str) -> Frame:
        frame = self._emit(EventKind.STOP, finish_reason)

        if self.phase != StreamPhase.TERMINATED:
            self.phase = StreamPhase.TERMINATED
            self.finish_reason = finish_reason
            if self.metrics:
                self.metrics.record_stream_completed(finish_reason)
            logger.info(
                "Stream completed",
                correlation_id=self.correlation_id,
                finish_reason=finish_reason,
                chunks_processed=self.chunks_processed,
                frames_emitted=self.frames_emitted,
                chunk_errors=self.error_count,
            )
            self._fire("on_completion", finish_reason)

        return frame

    def _failure_frame(self, failure: ChunkFailure) -> Frame:
        self.error_count += 1
        if self.metrics:
            self.metrics.record_chunk_error(failure.error_type.value)
        logger.warning(
            "Malformed stream chunk",
            correlation_id=failure.correlation_id,
            error_type=failure.error_type.value,
            error_name=failure.error_name,
            error=failure.error_message,
            provider=self.provider,
        )
        payload = failure.to_payload(include_chunk=self.settings.include_chunk_in_errors)
        return self._emit(EventKind.ERROR, payload, correlation_id=failure.correlation_id)

    def _emit(self, event: EventKind, data: Any, correlation_id: Optional[str] = None) -> Frame:
        self.frames_emitted += 1
        if self.metrics:
            self.metrics.record_frame(event.value)
        return Frame(
            correlation_id=correlation_id or self.correlation_id,
            event=event,
            data=data,
        )

    def _fire(self, name: str, *args: Any):
        hook = getattr(self.callbacks, name)
        if hook is not None:
            hook(*args)


# ============================================================
# Stream drivers
# ============================================================

async def aiter_source(chunks: Union[AsyncIterable[Any], Iterable[Any]]) -> AsyncIterator[Any]:
    if hasattr(chunks, "__aiter__"):
        async for chunk in chunks:
            yield chunk
    else:
        for chunk in chunks:
            yield chunk


@contextmanager
def stream_log_context(normalizer: StreamNormalizer) -> Iterator[LogContext]:
    """
    Tag every log record emitted while the stream runs with its stream id,
    provider and model. The stream id follows the normalizer's
    correlation id as chunks reveal it.
    """
    fields = {
        "stream_id": normalizer.correlation_id,
        "provider": normalizer.provider,
        "model": normalizer.model,
    }
    with log_context(**{k: v for k, v in fields.items() if v}) as ctx:
        normalizer.log_context = ctx
        try:
            yield ctx
        finally:
            normalizer.log_context = None


def normalize_chunks(
    chunks: Iterable[Any],
    callbacks: Optional[StreamCallbacks] = None,
    **kwargs: Any,
) -> Iterator[str]:
    """
    Lazily normalize a synchronous chunk iterable into encoded frames.

    Keyword arguments are passed to StreamNormalizer.
    """
    normalizer = StreamNormalizer(callbacks, **kwargs)
    with stream_log_context(normalizer):
        for chunk in chunks:
            for frame in normalizer.process(chunk):
                yield encode_frame(frame)


async def aiter_frames(
    chunks: Union[AsyncIterable[Any], Iterable[Any]],
    callbacks: Optional[StreamCallbacks] = None,
    **kwargs: Any,
) -> AsyncIterator[Frame]:
    """Lazily normalize an (async) chunk iterable into Frame objects."""
    normalizer = StreamNormalizer(callbacks, **kwargs)
    with stream_log_context(normalizer):
        async for chunk in aiter_source(chunks):
            for frame in normalizer.process(chunk):
                yield frame


async def normalize_stream(
    chunks: Union[AsyncIterable[Any], Iterable[Any]],
    callbacks: Optional[StreamCallbacks] = None,
    **kwargs: Any,
) -> AsyncIterator[str]:
    """
    Lazily normalize an (async) chunk iterable into encoded frames.

    Closing the returned generator stops pulling from the source.
    """
    normalizer = StreamNormalizer(callbacks, **kwargs)
    with stream_log_context(normalizer):
        async for chunk in aiter_source(chunks):
            for frame in normalizer.process(chunk):
                yield encode_frame(frame)
