"""Stream adapter for converting OpenAI Chat Completions deltas to Anthropic Messages SSE.

The backend streams a flat sequence of deltas with no block boundaries.
Anthropic clients expect explicit, well-nested block events keyed by a
zero-based index, where a block is a maximal run of same-kind content.

OpenAI Chat Completion chunks (already decoded from SSE):
    {"choices":[{"delta":{"role":"assistant"},"index":0}]}
    {"choices":[{"delta":{"content":"Hello"},"index":0}]}
    {"choices":[{"delta":{"tool_calls":[...]},"index":0}]}
    {"choices":[{"delta":{},"finish_reason":"stop","index":0}]}

Anthropic Messages events:
    event: message_start
    data: {"type":"message_start","message":{...}}

    event: content_block_start
    data: {"type":"content_block_start","index":0,"content_block":{"type":"text","text":""}}

    event: content_block_delta
    data: {"type":"content_block_delta","index":0,"delta":{"type":"text_delta","text":"Hello"}}

    event: content_block_stop
    data: {"type":"content_block_stop","index":0}

    event: message_delta
    data: {"type":"message_delta","delta":{"stop_reason":"end_turn","stop_sequence":null},"usage":{"output_tokens":0}}

    event: message_stop
    data: {"type":"message_stop"}
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Mapping, Optional

from ..core.sse import format_sse_event
from .translator import MESSAGE_ID_PREFIX, map_stop_reason

logger = logging.getLogger("llmgate")

StreamEvent = dict[str, Any]


def new_message_id() -> str:
    return f"{MESSAGE_ID_PREFIX}{uuid.uuid4().hex[:24]}"


class BlockKind(str, Enum):
    NONE = "none"
    TEXT = "text"
    TOOL_USE = "tool_use"


@dataclass
class BlockState:
    """Identity of the content block currently open on the output stream.

    ``index`` is ``None`` until the first block opens and only ever grows,
    so indices are never reused.
    """

    index: Optional[int] = None
    kind: BlockKind = BlockKind.NONE
    tool_call_id: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.kind is not BlockKind.NONE

    def open(self, kind: BlockKind, tool_call_id: Optional[str] = None) -> int:
        self.index = 0 if self.index is None else self.index + 1
        self.kind = kind
        self.tool_call_id = tool_call_id
        return self.index

    def close(self) -> None:
        self.kind = BlockKind.NONE
        self.tool_call_id = None


class ChatToMessagesStreamAdapter:
    """Re-frames OpenAI chat completion chunks as Anthropic Messages events.

    ``start``/``feed``/``finish`` are synchronous and transport-free so the
    state machine can be driven directly with literal chunks;
    ``adapt_stream`` runs them over a live chunk iterator and encodes SSE.
    """

    def __init__(
        self,
        message_id: str,
        model: str,
        state: Optional[BlockState] = None,
    ):
        """Initialize the stream adapter.

        Args:
            message_id: The message ID to use (e.g., "msg_xxx")
            model: Model name echoed to the caller
            state: Block state to drive; a fresh one by default
        """
        self.message_id = message_id
        self.model = model
        self.state = state or BlockState()
        self.started = False
        self.terminated = False
        self.stopped = False
        self.finish_reason: Optional[str] = None

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def start(self) -> list[StreamEvent]:
        """Events emitted when the stream opens."""
        if self.started:
            return []
        self.started = True
        return [{
            "type": "message_start",
            "message": {
                "id": self.message_id,
                "type": "message",
                "role": "assistant",
                "model": self.model,
                "content": [],
                "stop_reason": None,
                "stop_sequence": None,
                "usage": {"input_tokens": 0, "output_tokens": 0},
            },
        }]

    def feed(self, chunk: Mapping[str, Any]) -> list[StreamEvent]:
        """Process one backend chunk and return the events it produces."""
        events: list[StreamEvent] = []
        if not self.started:
            events.extend(self.start())

        choices = chunk.get("choices") or []
        if not choices:
            return events
        choice = choices[0]
        delta = choice.get("delta") or {}

        if self.terminated:
            if delta.get("content") or delta.get("tool_calls"):
                logger.debug("Ignoring content received after finish_reason")
            return events

        content = delta.get("content")
        if content:
            events.extend(self._on_text(content))

        for tool_call in delta.get("tool_calls") or []:
            events.extend(self._on_tool_call(tool_call))

        finish_reason = choice.get("finish_reason")
        if finish_reason:
            events.extend(self._on_terminal(finish_reason))
        return events

    def finish(self) -> list[StreamEvent]:
        """Events emitted when the backend stream ends."""
        events: list[StreamEvent] = []
        if self.stopped:
            return events
        if not self.started:
            events.extend(self.start())
        if not self.terminated:
            logger.debug("Backend stream ended without finish_reason")
            events.extend(self._on_terminal(None))
        self.stopped = True
        events.append({"type": "message_stop"})
        return events

    def _close_open_block(self) -> list[StreamEvent]:
        if not self.state.is_open:
            return []
        index = self.state.index
        self.state.close()
        return [{"type": "content_block_stop", "index": index}]

    def _on_text(self, text: str) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        if self.state.kind is not BlockKind.TEXT:
            events.extend(self._close_open_block())
            index = self.state.open(BlockKind.TEXT)
            events.append({
                "type": "content_block_start",
                "index": index,
                "content_block": {"type": "text", "text": ""},
            })
        events.append({
            "type": "content_block_delta",
            "index": self.state.index,
            "delta": {"type": "text_delta", "text": text},
        })
        return events

    def _on_tool_call(self, tool_call: Mapping[str, Any]) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        call_id = tool_call.get("id")
        function = tool_call.get("function") or {}
        arguments = function.get("arguments")

        if call_id:
            events.extend(self._close_open_block())
            index = self.state.open(BlockKind.TOOL_USE, tool_call_id=call_id)
            events.append({
                "type": "content_block_start",
                "index": index,
                "content_block": {
                    "type": "tool_use",
                    "id": call_id,
                    "name": function.get("name") or "",
                    "input": {},
                },
            })
        elif self.state.kind is not BlockKind.TOOL_USE:
            if arguments:
                logger.warning("Dropping tool-call arguments with no open tool_use block")
            return events

        if arguments:
            events.append({
                "type": "content_block_delta",
                "index": self.state.index,
                "delta": {"type": "input_json_delta", "partial_json": arguments},
            })
        return events

    def _on_terminal(self, finish_reason: Optional[str]) -> list[StreamEvent]:
        self.terminated = True
        self.finish_reason = finish_reason
        events = self._close_open_block()
        events.append({
            "type": "message_delta",
            "delta": {
                "stop_reason": map_stop_reason(finish_reason),
                "stop_sequence": None,
            },
            "usage": {"output_tokens": 0},
        })
        return events

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def adapt_stream(
        self,
        chunks: AsyncIterator[Mapping[str, Any]],
    ) -> AsyncIterator[bytes]:
        """Transform backend chunks into Anthropic Messages SSE events.

        Args:
            chunks: Decoded OpenAI chat completion chunks

        Yields:
            Anthropic Messages API SSE events as bytes
        """
        for event in self.start():
            yield encode_event(event)
        async for chunk in chunks:
            for event in self.feed(chunk):
                yield encode_event(event)
        for event in self.finish():
            yield encode_event(event)


def encode_event(event: StreamEvent) -> bytes:
    return format_sse_event(event["type"], event)


async def adapt_chat_stream_to_messages(
    message_id: str,
    model: str,
    chunks: AsyncIterator[Mapping[str, Any]],
) -> AsyncIterator[bytes]:
    """Convenience function to adapt an OpenAI chat stream to Anthropic Messages."""
    adapter = ChatToMessagesStreamAdapter(message_id, model)
    async for event in adapter.adapt_stream(chunks):
        yield event
