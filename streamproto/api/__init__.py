"""
streamproto - API Module

FastAPI helpers for serving canonical frame streams.
"""

from .sse import sse_response

__all__ = ["sse_response"]
