"""
streamproto - Streaming Module

Canonical stream normalization for all providers with:
- One self-describing frame protocol (text, tool_calls, stop, data, error)
- Per-chunk tool call fragment normalization
- Inline error frames for malformed chunks
- Optional observer hooks for rendering and telemetry
"""

from .protocol import (
    EventKind,
    Frame,
    FrameParser,
    decode_frames,
    encode_frame,
    encode_frame_bytes,
)
from .tool_calls import (
    StreamAccumulator,
    ToolCallAccumulator,
    normalize_tool_calls,
)
from .classify import (
    ChunkClassification,
    DataDelta,
    NoDelta,
    TextDelta,
    ToolCallsDelta,
    classify_chunk,
    classify_chunk_safely,
)
from .normalizer import (
    StreamCallbacks,
    StreamNormalizer,
    StreamPhase,
    aiter_frames,
    normalize_chunks,
    normalize_stream,
)
from .providers import (
    AnthropicChunkAdapter,
    GeminiChunkAdapter,
    adapt_stream,
    create_protocol_stream,
    get_chunk_adapter,
)
from .errors import (
    ChunkFailure,
    FrameDecodeError,
    StreamErrorType,
    StreamProtocolError,
    UnsupportedProviderError,
)

__all__ = [
    # Protocol
    "EventKind",
    "Frame",
    "FrameParser",
    "decode_frames",
    "encode_frame",
    "encode_frame_bytes",
    # Tool Calls
    "StreamAccumulator",
    "ToolCallAccumulator",
    "normalize_tool_calls",
    # Classification
    "ChunkClassification",
    "DataDelta",
    "NoDelta",
    "TextDelta",
    "ToolCallsDelta",
    "classify_chunk",
    "classify_chunk_safely",
    # Normalizer
    "StreamCallbacks",
    "StreamNormalizer",
    "StreamPhase",
    "aiter_frames",
    "normalize_chunks",
    "normalize_stream",
    # Providers
    "AnthropicChunkAdapter",
    "GeminiChunkAdapter",
    "adapt_stream",
    "create_protocol_stream",
    "get_chunk_adapter",
    # Errors
    "ChunkFailure",
    "FrameDecodeError",
    "StreamErrorType",
    "StreamProtocolError",
    "UnsupportedProviderError",
]
