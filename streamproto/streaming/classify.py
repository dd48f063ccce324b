"""
streamproto - Chunk Classification

Turns one raw, provider-shaped chunk into a closed set of delta variants:

- TextDelta:      the delta carries only a text string
- ToolCallsDelta: the delta carries a non-empty tool call fragment array
- DataDelta:      anything else, forwarded as-is or wrapped with metadata
- NoDelta:        nothing to emit for the content slot

New provider quirks get a variant and a test, not another special case
in the dispatcher.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel

from .errors import ChunkFailure
from .protocol import has_line_break
from .tool_calls import normalize_tool_calls

# Field names a provider may use for delta text, in lookup order
TEXT_FIELDS = ("content", "text")

# Delta fields that only identify the speaker and never carry content
IDENTIFYING_FIELDS = frozenset({"role"})

# A single-field delta with one of these names is forwarded unwrapped
RECOGNIZED_DELTA_FIELDS = frozenset({
    "content",
    "text",
    "role",
    "tool_calls",
    "function_call",
    "refusal",
    "reasoning_content",
})

# Failures raised while reading chunk structure
STRUCTURAL_ERRORS = (KeyError, IndexError, TypeError, AttributeError, ValueError)


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ToolCallsDelta:
    tool_calls: List[Dict[str, Any]]


@dataclass(frozen=True)
class DataDelta:
    payload: Any


@dataclass(frozen=True)
class NoDelta:
    pass


DeltaVariant = Union[TextDelta, ToolCallsDelta, DataDelta, NoDelta]


@dataclass
class ChunkClassification:
    """Everything the dispatcher needs from one well-formed chunk."""
    correlation_id: str
    delta: DeltaVariant = field(default_factory=NoDelta)
    finish_reason: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None


def as_record(chunk: Any) -> Mapping[str, Any]:
    """
    View a raw chunk as a mapping.

    pydantic models (e.g. OpenAI SDK chunks) are dumped with only the
    fields the provider actually sent.
    """
    if isinstance(chunk, BaseModel):
        return chunk.model_dump(exclude_unset=True)
    if isinstance(chunk, Mapping):
        return chunk
    raise TypeError(f"chunk is {type(chunk).__name__}, expected an object")


def _resolve_id(record: Mapping[str, Any], default_id: str) -> str:
    raw_id = record.get("id")
    # a line break would split the wire block
    if isinstance(raw_id, str) and raw_id and not has_line_break(raw_id):
        return raw_id
    return default_id


def _text_field(fields: Mapping[str, Any]) -> Optional[str]:
    for name in TEXT_FIELDS:
        if isinstance(fields.get(name), str):
            return name
    return None


def classify_delta(delta: Any, correlation_id: str, choice_index: Any = 0) -> DeltaVariant:
    """
    Classify one choice's delta.

    Policy:
    - a non-empty tool_calls array wins and is normalized
    - an empty tool_calls array counts as absent; alone it yields nothing
    - a str text field (empty string included) whose siblings are only
      role or null values is text; null text is not
    - a delta with at most one non-identifying field, and that field
      recognized, is forwarded as-is; anything else (the empty delta
      included) is wrapped with the chunk id and choice index
    """
    if delta is None:
        return NoDelta()
    if not isinstance(delta, Mapping):
        raise TypeError(f"delta is {type(delta).__name__}, expected an object")

    fields = dict(delta)

    tool_calls = fields.get("tool_calls")
    if tool_calls is not None:
        if not isinstance(tool_calls, (list, tuple)):
            raise TypeError(f"tool_calls is {type(tool_calls).__name__}, expected an array")
        if tool_calls:
            return ToolCallsDelta(tool_calls=normalize_tool_calls(tool_calls))
        del fields["tool_calls"]
        if not fields:
            return NoDelta()

    text_field = _text_field(fields)
    if text_field is not None and all(
        key == text_field or key in IDENTIFYING_FIELDS or value is None
        for key, value in fields.items()
    ):
        return TextDelta(text=fields[text_field])

    payload_fields = [key for key in fields if key not in IDENTIFYING_FIELDS]
    if fields and len(payload_fields) <= 1 and all(key in RECOGNIZED_DELTA_FIELDS for key in payload_fields):
        return DataDelta(payload=fields)

    return DataDelta(payload={
        "delta": fields,
        "id": correlation_id,
        "index": choice_index,
    })


def classify_chunk(chunk: Any, default_id: str) -> ChunkClassification:
    """
    Classify a raw chunk by its first choice.

    Raises one of STRUCTURAL_ERRORS when the chunk lacks the structure
    classification needs.
    """
    record = as_record(chunk)
    correlation_id = _resolve_id(record, default_id)

    if "choices" not in record:
        raise KeyError("chunk has no 'choices' field")
    choices = record["choices"]
    if not isinstance(choices, (list, tuple)):
        raise TypeError(f"choices is {type(choices).__name__}, expected an array")

    usage = record.get("usage")
    if usage is not None and not isinstance(usage, Mapping):
        raise TypeError(f"usage is {type(usage).__name__}, expected an object")
    usage = dict(usage) if usage else None

    if not choices:
        return ChunkClassification(correlation_id=correlation_id, usage=usage)

    choice = choices[0]
    if not isinstance(choice, Mapping):
        raise TypeError(f"choice is {type(choice).__name__}, expected an object")

    finish_reason = choice.get("finish_reason")
    if finish_reason is not None and not isinstance(finish_reason, str):
        raise TypeError(f"finish_reason is {type(finish_reason).__name__}, expected a string")

    return ChunkClassification(
        correlation_id=correlation_id,
        delta=classify_delta(choice.get("delta"), correlation_id, choice.get("index", 0)),
        finish_reason=finish_reason or None,
        usage=usage,
    )


def classify_chunk_safely(
    chunk: Any,
    default_id: str,
) -> Union[ChunkClassification, ChunkFailure]:
    """
    Failure boundary around classify_chunk.

    Structural failures come back as a ChunkFailure value so a single
    bad chunk never unwinds the stream.
    """
    try:
        return classify_chunk(chunk, default_id)
    except STRUCTURAL_ERRORS as e:
        correlation_id = default_id
        if isinstance(chunk, Mapping):
            correlation_id = _resolve_id(chunk, default_id)
        elif isinstance(chunk, BaseModel):
            correlation_id = _resolve_id({"id": getattr(chunk, "id", None)}, default_id)
        return ChunkFailure(error=e, chunk=chunk, correlation_id=correlation_id)
