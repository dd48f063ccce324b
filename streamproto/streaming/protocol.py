"""
streamproto - Canonical Frame Protocol

Every normalized stream is a sequence of self-delimited frames:

    id: <correlation id>
    event: <event kind>
    data: <json payload>
    <blank line>

Encoding is deterministic and side-effect free. The decoder is the
inverse used by downstream consumers and tests.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import FrameDecodeError


class EventKind(str, Enum):
    """Canonical frame event kinds."""
    TEXT = "text"
    TOOL_CALLS = "tool_calls"
    STOP = "stop"
    DATA = "data"
    ERROR = "error"


# Event kinds whose frames carry model output
CONTENT_EVENTS = frozenset({EventKind.TEXT, EventKind.TOOL_CALLS, EventKind.DATA})


@dataclass(frozen=True)
class Frame:
    """One canonical output event."""
    correlation_id: str
    event: EventKind
    data: Any

    @property
    def is_content(self) -> bool:
        return self.event in CONTENT_EVENTS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.correlation_id,
            "event": self.event.value,
            "data": self.data,
        }

    def to_sse(self) -> str:
        """Convert to the wire block."""
        return encode_frame(self)


def _dump_json(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))


def has_line_break(value: str) -> bool:
    return "\n" in value or "\r" in value


def encode_frame(frame: Frame) -> str:
    """
    Encode a frame as a wire block.

    Non-serializable data raises TypeError from json; frames are
    expected to carry JSON values by construction.

    Raises:
        ValueError: the correlation id contains a line break
    """
    if has_line_break(frame.correlation_id):
        raise ValueError(f"Correlation id contains a line break: {frame.correlation_id!r}")
    return (
        f"id: {frame.correlation_id}\n"
        f"event: {frame.event.value}\n"
        f"data: {_dump_json(frame.data)}\n\n"
    )


def encode_frame_bytes(frame: Frame) -> bytes:
    """Encode a frame as UTF-8 bytes."""
    return encode_frame(frame).encode("utf-8")


def _parse_block(block: str) -> Frame:
    correlation_id = ""
    event: Optional[str] = None
    data_lines: List[str] = []

    for line in block.split("\n"):
        if not line or line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "id":
            correlation_id = value
        elif name == "event":
            event = value
        elif name == "data":
            data_lines.append(value)

    if event is None:
        raise FrameDecodeError("Frame is missing an event line", block)
    try:
        kind = EventKind(event)
    except ValueError:
        raise FrameDecodeError(f"Unknown event kind: {event}", block) from None

    if not data_lines:
        raise FrameDecodeError("Frame is missing a data line", block)
    try:
        data = json.loads("\n".join(data_lines))
    except json.JSONDecodeError as e:
        raise FrameDecodeError(f"Invalid frame data JSON: {e}", block) from e

    return Frame(correlation_id=correlation_id, event=kind, data=data)


class FrameParser:
    """
    Incremental frame decoder.

    Text may be fed in arbitrary pieces; complete blocks are returned as
    soon as their blank-line terminator arrives.
    """

    def __init__(self):
        self._buffer = ""

    def feed(self, text: str) -> List[Frame]:
        """Feed more text and return the frames it completed."""
        self._buffer = (self._buffer + text).replace("\r\n", "\n")
        frames = []
        while "\n\n" in self._buffer:
            block, self._buffer = self._buffer.split("\n\n", 1)
            if block.strip():
                frames.append(_parse_block(block))
        return frames

    def flush(self) -> List[Frame]:
        """Parse whatever is left in the buffer as a final block."""
        block, self._buffer = self._buffer, ""
        if not block.strip():
            return []
        return [_parse_block(block)]


def decode_frames(text: str) -> List[Frame]:
    """Decode a complete encoded stream."""
    parser = FrameParser()
    frames = parser.feed(text)
    frames.extend(parser.flush())
    return frames
