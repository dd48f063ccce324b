"""
streamproto - Streaming Error Handling

Errors that occur while normalizing a stream.

Key principle:
- A chunk that cannot be classified never aborts the stream. It becomes
  one inline error frame and processing resumes with the next chunk.
- Errors on the consumer side (decoding frames, unknown providers) are
  ordinary exceptions.

This module provides:
- The per-chunk failure result carried back to the dispatcher
- The StreamChunkError payload shape
- The exception hierarchy for decoder and driver errors
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional


CHUNK_PARSE_ERROR_MESSAGE = (
    "chat response streaming chunk parse error, please contact your API Provider to fix it."
)
CHUNK_ERROR_TYPE = "StreamChunkError"


class StreamErrorType(str, Enum):
    """Types of per-chunk stream errors."""
    MALFORMED_CHUNK = "malformed_chunk"


class StreamProtocolError(Exception):
    """Base exception for streamproto errors."""
    pass


class FrameDecodeError(StreamProtocolError):
    """An encoded frame block could not be parsed."""

    def __init__(self, message: str, block: str = ""):
        self.block = block
        super().__init__(message)


class UnsupportedProviderError(StreamProtocolError):
    """No chunk adapter exists for the requested provider."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Unsupported provider: {provider}")


def to_jsonable(value: Any) -> Any:
    """
    Copy a raw chunk into plain JSON-safe values.

    Mappings become dicts, lists/tuples become lists, pydantic models are
    dumped, scalars pass through and anything else is stringified.
    """
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    model_dump = getattr(value, "model_dump", None)
    if callable(model_dump):
        return to_jsonable(model_dump())
    return str(value)


@dataclass
class ChunkFailure:
    """
    Result of a chunk that failed structural classification.

    Returned instead of raised so the stream keeps going.
    """
    error: BaseException
    chunk: Any
    error_type: StreamErrorType = StreamErrorType.MALFORMED_CHUNK
    correlation_id: Optional[str] = None

    @property
    def error_name(self) -> str:
        return type(self.error).__name__

    @property
    def error_message(self) -> str:
        # KeyError wraps its message in quotes
        if isinstance(self.error, KeyError) and self.error.args:
            return str(self.error.args[0])
        return str(self.error)

    def to_payload(self, include_chunk: bool = True) -> Dict[str, Any]:
        """
        Build the StreamChunkError payload for the error frame.

        Args:
            include_chunk: Embed a JSON-safe copy of the whole chunk.
                When False only the chunk id is kept.
        """
        if include_chunk:
            chunk_context = to_jsonable(self.chunk)
        else:
            chunk_context = {"id": self.correlation_id}

        return {
            "body": {
                "message": CHUNK_PARSE_ERROR_MESSAGE,
                "context": {
                    "error": {
                        "message": self.error_message,
                        "name": self.error_name,
                    },
                    "chunk": chunk_context,
                },
            },
            "type": CHUNK_ERROR_TYPE,
        }
