"""SSE (Server-Sent Events) decoding, encoding and error detection."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger("llmgate")

DONE_SENTINEL = "[DONE]"


@dataclass
class SSEEvent:
    data: Optional[str]
    event: Optional[str] = None
    other_lines: list[str] = field(default_factory=list)


class SSEDecoder:
    """Incremental SSE parser.

    Network chunks do not line up with event boundaries, so bytes are
    buffered until a blank line terminates an event.
    """

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[SSEEvent]:
        if not chunk:
            return []
        text = chunk.decode("utf-8", errors="replace")
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        self._buffer += text
        events: list[SSEEvent] = []

        while True:
            sep_index = self._buffer.find("\n\n")
            if sep_index == -1:
                break
            raw_event = self._buffer[:sep_index]
            self._buffer = self._buffer[sep_index + 2:]
            event = self._parse_event(raw_event)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> list[SSEEvent]:
        """Parse whatever is left once the stream has ended."""
        if not self._buffer.strip():
            self._buffer = ""
            return []
        raw_event = self._buffer
        self._buffer = ""
        event = self._parse_event(raw_event)
        return [event] if event is not None else []

    @staticmethod
    def _parse_event(raw_event: str) -> Optional[SSEEvent]:
        data_lines: list[str] = []
        other_lines: list[str] = []
        event_name: Optional[str] = None
        for line in raw_event.split("\n"):
            if line.startswith("data:"):
                data_lines.append(line[5:].lstrip(" "))
            elif line.startswith("event:"):
                event_name = line[6:].strip()
            elif line:
                other_lines.append(line)
        if not data_lines and event_name is None and not other_lines:
            return None
        data = "\n".join(data_lines) if data_lines else None
        return SSEEvent(data=data, event=event_name, other_lines=other_lines)


def format_sse_event(event_type: str, data: dict[str, Any]) -> bytes:
    """Encode a named SSE event (Anthropic style)."""
    json_str = json.dumps(data, ensure_ascii=False)
    return f"event: {event_type}\ndata: {json_str}\n\n".encode("utf-8")


def format_sse_data(data: Any) -> bytes:
    """Encode an unnamed ``data:`` SSE event (OpenAI style)."""
    if isinstance(data, str):
        payload = data
    else:
        payload = json.dumps(data, ensure_ascii=False)
    return f"data: {payload}\n\n".encode("utf-8")


def detect_sse_stream_error(payload: Any) -> Optional[str]:
    """Return an error message if a decoded stream payload is an error object.

    Detects patterns like:
    - {"type":"error","error":{...}}
    - Generic OpenAI-style {"error":{...}}
    """
    if not isinstance(payload, dict):
        return None

    if payload.get("type") == "error":
        error_obj = payload.get("error") or {}
        if isinstance(error_obj, dict):
            error_msg = error_obj.get("message") or str(error_obj)
        else:
            error_msg = str(error_obj) or "unknown error"
        return f"SSE stream error: {error_msg}"

    error_obj = payload.get("error")
    if isinstance(error_obj, dict):
        error_msg = error_obj.get("message") or str(error_obj)
        error_type = error_obj.get("type", "unknown")
        return f"SSE stream error: {error_msg} (type={error_type})"
    if isinstance(error_obj, str) and error_obj:
        return f"SSE stream error: {error_obj}"

    return None
