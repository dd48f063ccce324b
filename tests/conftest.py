"""
streamproto - Pytest Configuration

Configures:
- Settings and metrics isolation
- Raw chunk factories
- A hook recorder for observer callback assertions
"""

from collections import defaultdict
from typing import Any, Dict, List, Optional

import pytest
from prometheus_client import CollectorRegistry

from streamproto.config import NormalizerSettings, reset_settings
from streamproto.observability.logging import LogContext
from streamproto.observability.metrics import StreamMetrics
from streamproto.streaming.normalizer import StreamCallbacks


# ============================================================
# Chunk factories
# ============================================================

def make_chunk(
    delta: Any = None,
    chunk_id: Optional[str] = "chatcmpl-1",
    finish_reason: Optional[str] = None,
    index: int = 0,
    usage: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build an OpenAI-compatible streaming chunk."""
    chunk: Dict[str, Any] = {
        "choices": [{
            "delta": delta,
            "finish_reason": finish_reason,
            "index": index,
        }],
    }
    if chunk_id is not None:
        chunk["id"] = chunk_id
    if usage is not None:
        chunk["usage"] = usage
    return chunk


def text_chunk(text: Optional[str], chunk_id: str = "chatcmpl-1", **kwargs) -> Dict[str, Any]:
    return make_chunk({"content": text}, chunk_id=chunk_id, **kwargs)


def tool_call_chunk(fragments: List[Dict[str, Any]], chunk_id: str = "chatcmpl-1", **kwargs) -> Dict[str, Any]:
    return make_chunk({"tool_calls": fragments}, chunk_id=chunk_id, **kwargs)


# ============================================================
# Hook recorder
# ============================================================

class HookRecorder:
    """Records every observer hook invocation."""

    def __init__(self):
        self.calls: Dict[str, List[tuple]] = defaultdict(list)

    def callbacks(self) -> StreamCallbacks:
        return StreamCallbacks(
            on_start=lambda: self.calls["on_start"].append(()),
            on_text=lambda text: self.calls["on_text"].append((text,)),
            on_token=lambda data: self.calls["on_token"].append((data,)),
            on_tool_call=lambda calls: self.calls["on_tool_call"].append((calls,)),
            on_completion=lambda reason: self.calls["on_completion"].append((reason,)),
            on_usage=lambda usage: self.calls["on_usage"].append((usage,)),
        )

    def count(self, name: str) -> int:
        return len(self.calls[name])

    def args(self, name: str) -> List[Any]:
        return [call[0] for call in self.calls[name]]


# ============================================================
# Fixtures
# ============================================================

@pytest.fixture(autouse=True)
def _isolate_settings():
    """Environment-derived settings and log context never leak between tests."""
    reset_settings()
    LogContext.clear()
    yield
    reset_settings()
    LogContext.clear()


@pytest.fixture
def settings() -> NormalizerSettings:
    return NormalizerSettings(metrics_enabled=False)


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def metrics(registry) -> StreamMetrics:
    return StreamMetrics(registry=registry)


@pytest.fixture
def recorder() -> HookRecorder:
    return HookRecorder()
