# api/sse.py
"""
Server-Sent Events framing.
One event per frame: `data: <json>\n\n`, camelCase fields.
"""

import json
from typing import Any, AsyncIterator

from fastapi.responses import StreamingResponse
from loguru import logger


SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def encode_event(event: Any) -> str:
    """Serialize one event model (or dict) into a complete SSE frame"""
    payload = event.to_wire() if hasattr(event, "to_wire") else event
    return f"data: {json.dumps(payload, separators=(',', ':'))}\n\n"


async def _frames(events: AsyncIterator[Any]) -> AsyncIterator[str]:
    try:
        async for event in events:
            yield encode_event(event)
    finally:
        # Disconnects close this generator; propagate to the session so workers stop
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()
        logger.debug("SSE stream closed")


def sse_response(events: AsyncIterator[Any]) -> StreamingResponse:
    return StreamingResponse(_frames(events), media_type="text/event-stream", headers=SSE_HEADERS)
