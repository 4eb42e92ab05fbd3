"""Typed Anthropic content blocks.

Message content arrives as loosely-typed JSON. It is parsed once into a
closed set of dataclasses so every mapping site can match exhaustively
instead of probing ``type`` strings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from typing_extensions import assert_never

from ..core.exceptions import InvalidRequestError

logger = logging.getLogger("llmgate")

# Block kinds accepted on the wire but not forwarded to the backend.
DROPPED_BLOCK_TYPES = frozenset({"image", "document", "thinking", "redacted_thinking"})


@dataclass(frozen=True)
class TextBlock:
    text: str


@dataclass(frozen=True)
class ToolUseBlock:
    id: str
    name: str
    input: Any = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResultBlock:
    """Result of a tool call, sent back by the caller in a user turn.

    ``content`` is either a plain string or the text fragments of a block
    list; non-text fragments are discarded during parsing.
    """

    tool_use_id: str
    content: Union[str, tuple[TextBlock, ...]] = ""
    is_error: bool = False

    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return "\n".join(fragment.text for fragment in self.content)


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]


def _require_str(block: Mapping[str, Any], key: str, block_type: str) -> str:
    value = block.get(key)
    if not isinstance(value, str):
        raise InvalidRequestError(
            f"{block_type} block requires a string '{key}'", code="invalid_content_block"
        )
    return value


def _parse_tool_result_content(raw: Any) -> Union[str, tuple[TextBlock, ...]]:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, list):
        fragments = []
        for item in raw:
            if isinstance(item, Mapping) and item.get("type") == "text":
                fragments.append(TextBlock(text=str(item.get("text") or "")))
        return tuple(fragments)
    return str(raw)


def parse_content_block(raw: Any) -> Optional[ContentBlock]:
    """Parse one wire content block.

    Returns ``None`` for known kinds that are deliberately not forwarded
    (images, documents, thinking).

    Raises:
        InvalidRequestError: For malformed blocks and unknown block types.
    """
    if not isinstance(raw, Mapping):
        raise InvalidRequestError("Content blocks must be objects", code="invalid_content_block")

    block_type = raw.get("type")
    if block_type == "text":
        return TextBlock(text=_require_str(raw, "text", "text"))
    if block_type == "tool_use":
        return ToolUseBlock(
            id=_require_str(raw, "id", "tool_use"),
            name=_require_str(raw, "name", "tool_use"),
            input=raw.get("input") if raw.get("input") is not None else {},
        )
    if block_type == "tool_result":
        return ToolResultBlock(
            tool_use_id=_require_str(raw, "tool_use_id", "tool_result"),
            content=_parse_tool_result_content(raw.get("content")),
            is_error=bool(raw.get("is_error", False)),
        )
    if block_type in DROPPED_BLOCK_TYPES:
        logger.debug(f"Dropping unsupported {block_type} block")
        return None

    raise InvalidRequestError(
        f"Unsupported content block type: {block_type!r}", code="invalid_content_block"
    )


def parse_content(content: Any) -> Union[str, list[ContentBlock]]:
    """Parse message content into a string or a list of typed blocks."""
    if isinstance(content, str):
        return content
    if content is None:
        return ""
    if not isinstance(content, list):
        raise InvalidRequestError(
            "Message content must be a string or a list of content blocks",
            code="invalid_content",
        )
    blocks: list[ContentBlock] = []
    for raw in content:
        block = parse_content_block(raw)
        if block is not None:
            blocks.append(block)
    return blocks


def block_to_wire(block: ContentBlock) -> dict[str, Any]:
    """Serialize a typed block back to its Anthropic JSON shape."""
    if isinstance(block, TextBlock):
        return {"type": "text", "text": block.text}
    if isinstance(block, ToolUseBlock):
        return {"type": "tool_use", "id": block.id, "name": block.name, "input": block.input}
    if isinstance(block, ToolResultBlock):
        content: Any = block.content
        if not isinstance(content, str):
            content = [{"type": "text", "text": fragment.text} for fragment in content]
        wire: dict[str, Any] = {
            "type": "tool_result",
            "tool_use_id": block.tool_use_id,
            "content": content,
        }
        if block.is_error:
            wire["is_error"] = True
        return wire
    assert_never(block)
