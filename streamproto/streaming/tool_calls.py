"""
streamproto - Tool Call Streaming

Tool calls are streamed incrementally:
1. A fragment with the call id and function name
2. Fragments with partial argument text (often split mid-token)
3. A finish_reason of "tool_calls" on a later chunk

The normalizer side only fills structural defaults on each chunk's
fragment array. Reassembling arguments is the consumer's job, done by
StreamAccumulator over canonical frames.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .protocol import EventKind, Frame

DEFAULT_TOOL_CALL_TYPE = "function"


def normalize_tool_calls(fragments: Sequence[Any]) -> List[Dict[str, Any]]:
    """
    Fill missing structural fields on one chunk's tool call fragments.

    ``index`` defaults to the fragment's position in the array and
    ``type`` to "function". Everything else, including partial argument
    text, passes through unchanged. The input is not mutated.

    Raises:
        TypeError: a fragment is not a mapping
    """
    normalized = []
    for position, fragment in enumerate(fragments):
        if not isinstance(fragment, Mapping):
            raise TypeError(
                f"tool call fragment at position {position} is {type(fragment).__name__}, expected an object"
            )
        item = dict(fragment)
        if item.get("index") is None:
            item["index"] = position
        if item.get("type") is None:
            item["type"] = DEFAULT_TOOL_CALL_TYPE
        normalized.append(item)
    return normalized


@dataclass
class ToolCallAccumulator:
    """
    Accumulates the fragments of one tool call by index.

    The id and name keep the latest non-empty value; argument text is
    concatenated in arrival order.
    """
    index: int
    id: Optional[str] = None
    type: str = DEFAULT_TOOL_CALL_TYPE
    function_name: Optional[str] = None
    arguments_buffer: str = ""

    def update(self, fragment: Mapping[str, Any]):
        """Update with one normalized fragment."""
        if fragment.get("id"):
            self.id = fragment["id"]
        if fragment.get("type"):
            self.type = fragment["type"]
        function = fragment.get("function") or {}
        if function.get("name"):
            self.function_name = function["name"]
        if function.get("arguments"):
            self.arguments_buffer += function["arguments"]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to OpenAI tool call format."""
        return {
            "id": self.id,
            "type": self.type,
            "function": {
                "name": self.function_name,
                "arguments": self.arguments_buffer,
            },
        }


@dataclass
class StreamAccumulator:
    """
    Rebuilds a complete assistant turn from canonical frames.

    Usage:
        acc = StreamAccumulator()
        for frame in decode_frames(body):
            acc.feed(frame)
        acc.content, acc.tool_calls(), acc.finish_reason
    """
    content: str = ""
    finish_reason: Optional[str] = None
    correlation_id: Optional[str] = None
    errors: List[Any] = field(default_factory=list)
    data: List[Any] = field(default_factory=list)
    _calls: Dict[int, ToolCallAccumulator] = field(default_factory=dict)

    def feed(self, frame: Frame):
        """Apply one frame."""
        if frame.correlation_id:
            self.correlation_id = frame.correlation_id

        if frame.event == EventKind.TEXT:
            if frame.data:
                self.content += frame.data
        elif frame.event == EventKind.TOOL_CALLS:
            for fragment in frame.data:
                index = fragment.get("index", 0)
                if index not in self._calls:
                    self._calls[index] = ToolCallAccumulator(index=index)
                self._calls[index].update(fragment)
        elif frame.event == EventKind.STOP:
            self.finish_reason = frame.data
        elif frame.event == EventKind.ERROR:
            self.errors.append(frame.data)
        else:
            self.data.append(frame.data)

    def has_tool_calls(self) -> bool:
        return len(self._calls) > 0

    def tool_calls(self) -> List[Dict[str, Any]]:
        """Get all merged tool calls in index order."""
        return [self._calls[i].to_dict() for i in sorted(self._calls)]
