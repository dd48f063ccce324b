"""
streamproto - SSE Response

Wraps an encoded frame stream in a FastAPI streaming response.
"""

from typing import AsyncIterator, Optional

from fastapi.responses import StreamingResponse


def sse_response(
    stream: AsyncIterator[str],
    request_id: Optional[str] = None,
) -> StreamingResponse:
    """
    Serve encoded frames as text/event-stream.

    Usage:
        @app.post("/chat")
        async def chat(body: ChatRequest):
            chunks = await client.chat.completions.create(..., stream=True)
            return sse_response(normalize_stream(chunks), request_id=body.request_id)
    """
    headers = {
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
    }
    if request_id:
        headers["X-Request-Id"] = request_id

    return StreamingResponse(
        stream,
        media_type="text/event-stream",
        headers=headers,
    )
