"""
streamproto - Canonical Streaming Protocol

Normalizes provider-shaped LLM streaming chunks (OpenAI-compatible,
Anthropic, Google) into one ordered, self-describing frame protocol
that rendering, telemetry and tool execution can consume without
knowing which backend produced the data.
"""

__version__ = "1.0.0"
__author__ = "streamproto"
