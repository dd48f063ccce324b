"""
streamproto - Provider Chunk Adapters

Converts vendor streaming payloads into raw chunks of the
OpenAI-compatible shape the normalizer classifies:

    {"id": ..., "choices": [{"index": 0, "delta": {...}, "finish_reason": ...}], "usage": {...}}

Each adapter holds the little per-stream state its vendor needs (message
id, token counts) and returns zero or more chunks per vendor payload.
Payloads an adapter does not understand are passed through untouched so
the normalizer reports them as error frames instead of dropping them.
"""

import json
import uuid
from typing import Any, AsyncIterable, AsyncIterator, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel

from .classify import STRUCTURAL_ERRORS
from .errors import UnsupportedProviderError
from .normalizer import StreamCallbacks, aiter_source, normalize_stream


def _as_dict(payload: Any) -> Any:
    if isinstance(payload, BaseModel):
        return payload.model_dump(exclude_unset=True)
    return payload


def _chunk(
    chunk_id: str,
    delta: Optional[Dict[str, Any]] = None,
    finish_reason: Optional[str] = None,
    usage: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    chunk: Dict[str, Any] = {
        "id": chunk_id,
        "choices": [{
            "index": 0,
            "delta": delta,
            "finish_reason": finish_reason,
        }],
    }
    if usage:
        chunk["usage"] = usage
    return chunk


def _usage(prompt_tokens: int, completion_tokens: int) -> Dict[str, int]:
    return {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": prompt_tokens + completion_tokens,
    }


class AnthropicChunkAdapter:
    """
    Adapter for Anthropic Messages streaming events.

    Anthropic sends typed events:
    - message_start: {message: {id, usage: {input_tokens}}}
    - content_block_start: {index, content_block: {type: "text"|"tool_use", ...}}
    - content_block_delta: {index, delta: {type: "text_delta"|"input_json_delta"|"thinking_delta", ...}}
    - message_delta: {delta: {stop_reason}, usage: {output_tokens}}
    - message_stop, content_block_stop, ping: no content
    """

    FINISH_MAP = {
        "end_turn": "stop",
        "max_tokens": "length",
        "tool_use": "tool_calls",
        "stop_sequence": "stop",
        "refusal": "content_filter",
    }

    IGNORED_EVENTS = frozenset({"message_stop", "content_block_stop", "ping"})

    def __init__(self):
        self.message_id = f"msg_{uuid.uuid4().hex[:12]}"
        self.input_tokens = 0

    def convert(self, event: Any) -> List[Dict[str, Any]]:
        """Convert one event into zero or more raw chunks."""
        event = _as_dict(event)
        if not isinstance(event, Mapping):
            return [event]

        event_type = event.get("type")

        if event_type == "message_start":
            message = event.get("message") or {}
            self.message_id = message.get("id") or self.message_id
            self.input_tokens = (message.get("usage") or {}).get("input_tokens", 0)
            return []

        if event_type == "content_block_start":
            block = event.get("content_block") or {}
            if block.get("type") == "tool_use":
                return [_chunk(self.message_id, {
                    "tool_calls": [{
                        "index": event.get("index", 0),
                        "id": block.get("id"),
                        "type": "function",
                        "function": {"name": block.get("name"), "arguments": ""},
                    }],
                })]
            if block.get("type") == "text" and block.get("text"):
                return [_chunk(self.message_id, {"content": block["text"]})]
            return []

        if event_type == "content_block_delta":
            delta = event.get("delta") or {}
            delta_type = delta.get("type")

            if delta_type == "text_delta":
                return [_chunk(self.message_id, {"content": delta.get("text", "")})]

            if delta_type == "input_json_delta":
                return [_chunk(self.message_id, {
                    "tool_calls": [{
                        "index": event.get("index", 0),
                        "function": {"arguments": delta.get("partial_json", "")},
                    }],
                })]

            if delta_type == "thinking_delta":
                return [_chunk(self.message_id, {"reasoning_content": delta.get("thinking", "")})]

            return []

        if event_type == "message_delta":
            stop_reason = (event.get("delta") or {}).get("stop_reason")
            output_tokens = (event.get("usage") or {}).get("output_tokens")
            usage = _usage(self.input_tokens, output_tokens) if output_tokens is not None else None
            if not stop_reason and usage is None:
                return []
            if not stop_reason:
                return [{"id": self.message_id, "choices": [], "usage": usage}]
            return [_chunk(
                self.message_id,
                finish_reason=self.FINISH_MAP.get(stop_reason, "stop"),
                usage=usage,
            )]

        if event_type in self.IGNORED_EVENTS:
            return []

        # error events and unknown shapes
        return [dict(event)]


class GeminiChunkAdapter:
    """
    Adapter for Google Gemini streamGenerateContent chunks.

    Gemini sends {candidates: [{content: {parts: [...]}, finishReason}], usageMetadata}
    where parts hold {text} or {functionCall: {name, args}}. Function
    calls arrive whole, so their arguments are serialized in one fragment.
    """

    FINISH_MAP = {
        "STOP": "stop",
        "MAX_TOKENS": "length",
        "SAFETY": "content_filter",
        "RECITATION": "content_filter",
        "BLOCKLIST": "content_filter",
        "PROHIBITED_CONTENT": "content_filter",
    }

    def __init__(self):
        self.response_id = f"gen-{uuid.uuid4().hex[:12]}"
        # function calls seen so far; indexes continue across payloads
        self.tool_call_count = 0

    def convert(self, payload: Any) -> List[Dict[str, Any]]:
        """Convert one Gemini chunk into zero or more raw chunks."""
        payload = _as_dict(payload)
        if not isinstance(payload, Mapping):
            return [payload]

        if "candidates" not in payload and "usageMetadata" not in payload:
            blocked = (payload.get("promptFeedback") or {}).get("blockReason")
            if blocked:
                return [_chunk(self.response_id, finish_reason="content_filter")]
            return [dict(payload)]

        self.response_id = payload.get("responseId") or self.response_id
        chunks: List[Dict[str, Any]] = []

        candidates = payload.get("candidates") or []
        candidate = candidates[0] if candidates else {}
        parts = (candidate.get("content") or {}).get("parts") or []

        text = "".join(part["text"] for part in parts if isinstance(part.get("text"), str))
        if text:
            chunks.append(_chunk(self.response_id, {"content": text}))

        tool_calls = [
            {
                "index": self.tool_call_count + position,
                "id": f"call_{uuid.uuid4().hex[:8]}",
                "type": "function",
                "function": {
                    "name": part["functionCall"].get("name"),
                    "arguments": json.dumps(part["functionCall"].get("args", {})),
                },
            }
            for position, part in enumerate(p for p in parts if "functionCall" in p)
        ]
        if tool_calls:
            self.tool_call_count += len(tool_calls)
            chunks.append(_chunk(self.response_id, {"tool_calls": tool_calls}))

        finish_reason = candidate.get("finishReason")
        metadata = payload.get("usageMetadata")
        usage = None
        if metadata:
            usage = _usage(
                metadata.get("promptTokenCount", 0),
                metadata.get("candidatesTokenCount", 0),
            )

        if finish_reason:
            mapped = self.FINISH_MAP.get(finish_reason, "stop")
            if self.tool_call_count and mapped == "stop":
                mapped = "tool_calls"
            chunks.append(_chunk(self.response_id, finish_reason=mapped, usage=usage))
        elif usage:
            chunks.append({"id": self.response_id, "choices": [], "usage": usage})

        return chunks


ChunkAdapter = Union[AnthropicChunkAdapter, GeminiChunkAdapter]

_ADAPTERS = {
    "anthropic": AnthropicChunkAdapter,
    "google": GeminiChunkAdapter,
    "gemini": GeminiChunkAdapter,
}

# Providers whose chunks are already in the OpenAI-compatible shape
PASSTHROUGH_PROVIDERS = frozenset({"openai", "openrouter", "azure", "deepseek", "groq", "mistral"})


def get_chunk_adapter(provider: str) -> Optional[ChunkAdapter]:
    """
    Get a fresh adapter for the provider.

    Returns None for OpenAI-compatible providers.

    Raises:
        UnsupportedProviderError: unknown provider
    """
    name = provider.lower().strip()
    if name in PASSTHROUGH_PROVIDERS:
        return None
    if name not in _ADAPTERS:
        raise UnsupportedProviderError(provider)
    return _ADAPTERS[name]()


async def adapt_stream(
    payloads: Union[AsyncIterable[Any], Iterable[Any]],
    adapter: ChunkAdapter,
) -> AsyncIterator[Any]:
    """
    Pipe vendor payloads through an adapter, yielding raw chunks.

    A payload the adapter cannot read is forwarded unchanged so the
    normalizer turns it into an error frame.
    """
    async for payload in aiter_source(payloads):
        try:
            chunks = adapter.convert(payload)
        except STRUCTURAL_ERRORS:
            chunks = [payload]
        for chunk in chunks:
            yield chunk


def create_protocol_stream(
    provider: str,
    payloads: Union[AsyncIterable[Any], Iterable[Any]],
    callbacks: Optional[StreamCallbacks] = None,
    **kwargs: Any,
) -> AsyncIterator[str]:
    """
    Normalize any supported provider's stream into encoded frames.

    Raises:
        UnsupportedProviderError: unknown provider (raised immediately)
    """
    adapter = get_chunk_adapter(provider)
    source = payloads if adapter is None else adapt_stream(payloads, adapter)
    kwargs.setdefault("provider", provider)
    return normalize_stream(source, callbacks, **kwargs)
