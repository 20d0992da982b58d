# client/sse.py
"""
Server-Sent Events decoding for the search client.
Lines in, typed stream events out.
"""

import json
from typing import Any, List, Optional

from pydantic import ValidationError

from ..errors import TransportFailure
from ..schemas.search_schemas import parse_stream_event


class SSEDecoder:
    """
    Incremental decoder. Feed one line at a time (without the newline);
    a blank line ends a frame. Only `data:` fields are used; comments and
    other fields are ignored.
    """

    def __init__(self):
        self._data: List[str] = []

    def feed(self, line: str) -> Optional[Any]:
        line = line.rstrip("\r")
        if line == "":
            return self._flush()
        if line.startswith(":"):
            return None
        field, _, value = line.partition(":")
        if field == "data":
            self._data.append(value[1:] if value.startswith(" ") else value)
        return None

    def _flush(self) -> Optional[Any]:
        if not self._data:
            return None
        raw = "\n".join(self._data)
        self._data = []
        return decode_event(raw)


def decode_event(raw: str) -> Any:
    """JSON text of one frame -> typed event"""
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise TransportFailure("malformed", f"Event is not JSON: {raw[:80]!r}") from e
    if not isinstance(payload, dict):
        raise TransportFailure("malformed", "Event is not a JSON object")
    try:
        return parse_stream_event(payload)
    except ValidationError as e:
        raise TransportFailure("malformed", f"Unknown or invalid event: {e.error_count()} errors") from e

