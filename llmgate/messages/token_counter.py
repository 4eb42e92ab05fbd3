"""Approximate input token counting for /v1/messages/count_tokens.

Not a tokenizer: every string costs ceil(len / 4) tokens, with the length
measured in UTF-16 code units, and each message adds a fixed overhead.
Counts are stable for a given input, which is all the count endpoint
promises.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from typing_extensions import assert_never

from ..core.exceptions import InvalidRequestError
from .blocks import TextBlock, ToolResultBlock, ToolUseBlock, parse_content

CHARS_PER_TOKEN = 4
MESSAGE_OVERHEAD_TOKENS = 4


def text_length(text: str) -> int:
    """Length in UTF-16 code units, so astral characters count twice."""
    return len(text.encode("utf-16-le", errors="surrogatepass")) // 2


def estimate_text_tokens(text: str) -> int:
    """ceil(text_length(text) / 4)."""
    return -(-text_length(text) // CHARS_PER_TOKEN)


def _json_tokens(value: Any) -> int:
    return estimate_text_tokens(json.dumps(value, ensure_ascii=False, separators=(",", ":")))


def _system_tokens(system: Any) -> int:
    if not system:
        return 0
    if isinstance(system, str):
        return estimate_text_tokens(system)
    if isinstance(system, list):
        return sum(
            estimate_text_tokens(str(block.get("text") or ""))
            for block in system
            if isinstance(block, Mapping) and block.get("type") == "text"
        )
    raise InvalidRequestError("system must be a string or a list of text blocks")


def _message_tokens(message: Mapping[str, Any]) -> int:
    content = parse_content(message.get("content"))
    if isinstance(content, str):
        return estimate_text_tokens(content)

    total = 0
    for block in content:
        if isinstance(block, TextBlock):
            total += estimate_text_tokens(block.text)
        elif isinstance(block, ToolUseBlock):
            total += estimate_text_tokens(block.name)
            total += _json_tokens(block.input)
        elif isinstance(block, ToolResultBlock):
            if isinstance(block.content, str):
                total += estimate_text_tokens(block.content)
            else:
                total += sum(estimate_text_tokens(fragment.text) for fragment in block.content)
        else:
            assert_never(block)
    return total


def _tool_tokens(tool: Mapping[str, Any]) -> int:
    total = estimate_text_tokens(str(tool.get("name") or ""))
    description = tool.get("description")
    if description:
        total += estimate_text_tokens(str(description))
    total += _json_tokens(tool.get("input_schema"))
    return total


def estimate_input_tokens(payload: Mapping[str, Any]) -> int:
    """Estimate the input token count of an Anthropic Messages request."""
    messages = payload.get("messages") or []
    if not isinstance(messages, list):
        raise InvalidRequestError("messages must be a list", code="missing_parameter")
    tools = payload.get("tools") or []
    if not isinstance(tools, list):
        raise InvalidRequestError("tools must be a list")

    count = _system_tokens(payload.get("system"))
    for message in messages:
        if not isinstance(message, Mapping):
            raise InvalidRequestError("Each message must be an object")
        count += _message_tokens(message)
        count += MESSAGE_OVERHEAD_TOKENS
    for tool in tools:
        if not isinstance(tool, Mapping):
            raise InvalidRequestError("Each tool must be an object")
        count += _tool_tokens(tool)
    return count
