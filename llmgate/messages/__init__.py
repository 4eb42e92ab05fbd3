"""Anthropic Messages API translation helpers.

Provides translation between Anthropic Messages API format and OpenAI Chat
Completions API format, so Anthropic-format requests can be served by the
OpenAI-compatible backend.
"""

from .blocks import ContentBlock, TextBlock, ToolResultBlock, ToolUseBlock, parse_content
from .stream_adapter import (
    BlockKind,
    BlockState,
    ChatToMessagesStreamAdapter,
    adapt_chat_stream_to_messages,
    new_message_id,
)
from .token_counter import estimate_input_tokens
from .translator import (
    chat_completion_to_messages,
    map_messages,
    map_stop_reason,
    map_tool_choice,
    map_tools,
    messages_to_chat_completions,
)

__all__ = [
    "BlockKind",
    "BlockState",
    "ChatToMessagesStreamAdapter",
    "ContentBlock",
    "TextBlock",
    "ToolResultBlock",
    "ToolUseBlock",
    "adapt_chat_stream_to_messages",
    "chat_completion_to_messages",
    "estimate_input_tokens",
    "map_messages",
    "map_stop_reason",
    "map_tool_choice",
    "map_tools",
    "messages_to_chat_completions",
    "new_message_id",
    "parse_content",
]
