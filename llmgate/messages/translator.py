"""Anthropic <-> OpenAI Messages translation.

This module translates between Anthropic Messages API format and OpenAI Chat
Completions API format, so Anthropic-format requests can be served by an
OpenAI-compatible backend.

Key mappings:
- Anthropic system (top-level) -> OpenAI system message
- Anthropic content blocks -> OpenAI content / tool_calls / tool messages
- Anthropic tools -> OpenAI function tools
- Anthropic tool_choice -> OpenAI tool_choice

Reference:
- Anthropic Messages API: https://docs.anthropic.com/en/api/messages
- OpenAI Chat Completions: https://platform.openai.com/docs/api-reference/chat
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

from typing_extensions import assert_never

from ..core.exceptions import (
    InvalidRequestError,
    MalformedToolArgumentsError,
    UpstreamError,
)
from .blocks import (
    ContentBlock,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    block_to_wire,
    parse_content,
)

logger = logging.getLogger("llmgate")

MESSAGE_ID_PREFIX = "msg_"

# Sampling parameters copied verbatim when present and not null.
PASSTHROUGH_PARAMS = ("max_tokens", "temperature", "top_p")


def serialize_tool_input(input_data: Any) -> str:
    """Serialize tool input to a compact JSON string."""
    return json.dumps(input_data, ensure_ascii=False, separators=(",", ":"))


def map_system(system: Any) -> dict[str, Any] | None:
    """Convert Anthropic top-level system to an OpenAI system message.

    Anthropic allows system as a string or an array of text blocks.
    """
    if system is None:
        return None
    if isinstance(system, str):
        return {"role": "system", "content": system} if system else None
    if not isinstance(system, list):
        raise InvalidRequestError("system must be a string or a list of text blocks")

    text_parts: list[str] = []
    for block in system:
        if isinstance(block, Mapping) and block.get("type") == "text":
            text_parts.append(str(block.get("text") or ""))
        else:
            logger.warning(f"Ignoring non-text block in system parameter: {block!r:.80}")
    text = "\n".join(text_parts)
    if text:
        return {"role": "system", "content": text}
    return None


def _map_assistant_blocks(blocks: list[ContentBlock]) -> dict[str, Any]:
    texts: list[str] = []
    tool_calls: list[dict[str, Any]] = []
    for block in blocks:
        if isinstance(block, TextBlock):
            texts.append(block.text)
        elif isinstance(block, ToolUseBlock):
            tool_calls.append({
                "id": block.id,
                "type": "function",
                "function": {
                    "name": block.name,
                    "arguments": serialize_tool_input(block.input),
                },
            })
        elif isinstance(block, ToolResultBlock):
            logger.debug("Ignoring tool_result block in assistant turn")
        else:
            assert_never(block)

    text = "\n".join(texts)
    message: dict[str, Any] = {"role": "assistant", "content": text or None}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return message


def _map_user_blocks(role: str, blocks: list[ContentBlock]) -> list[dict[str, Any]]:
    texts: list[str] = []
    tool_messages: list[dict[str, Any]] = []
    for block in blocks:
        if isinstance(block, TextBlock):
            texts.append(block.text)
        elif isinstance(block, ToolResultBlock):
            tool_messages.append({
                "role": "tool",
                "tool_call_id": block.tool_use_id,
                "content": block.text(),
            })
        elif isinstance(block, ToolUseBlock):
            logger.debug(f"Ignoring tool_use block in {role} turn")
        else:
            assert_never(block)

    mapped: list[dict[str, Any]] = []
    text = "\n".join(texts)
    if text:
        mapped.append({"role": role, "content": text})
    mapped.extend(tool_messages)
    return mapped


def map_messages(messages: Any) -> list[dict[str, Any]]:
    """Translate Anthropic messages to OpenAI chat messages.

    String content passes through untouched. Block content on an assistant
    turn becomes one message carrying the joined text and any tool calls;
    on other turns it becomes an optional text message followed by one
    ``tool`` message per tool result. Source order is preserved.
    """
    if not isinstance(messages, list):
        raise InvalidRequestError("messages must be a list", code="missing_parameter")

    openai_messages: list[dict[str, Any]] = []
    for position, msg in enumerate(messages):
        if not isinstance(msg, Mapping):
            raise InvalidRequestError(f"messages[{position}] must be an object")
        role = msg.get("role")
        if not isinstance(role, str) or not role:
            raise InvalidRequestError(f"messages[{position}] is missing a role")

        content = parse_content(msg.get("content"))
        if isinstance(content, str):
            openai_messages.append({"role": role, "content": content})
        elif role == "assistant":
            openai_messages.append(_map_assistant_blocks(content))
        else:
            openai_messages.extend(_map_user_blocks(role, content))
    return openai_messages


def map_tools(tools: Any) -> list[dict[str, Any]] | None:
    """Convert Anthropic tools to OpenAI format.

    Anthropic: {"name": "...", "description": "...", "input_schema": {...}}
    OpenAI: {"type": "function", "function": {"name": "...", "description": "...", "parameters": {...}}}

    Absent or empty input yields ``None`` so no ``tools`` field is sent.
    """
    if not tools:
        return None
    if not isinstance(tools, list):
        raise InvalidRequestError("tools must be a list")

    openai_tools = []
    for tool in tools:
        if not isinstance(tool, Mapping) or not isinstance(tool.get("name"), str):
            raise InvalidRequestError("Each tool requires a string 'name'")
        function: dict[str, Any] = {"name": tool["name"]}
        if tool.get("description") is not None:
            function["description"] = tool["description"]
        function["parameters"] = tool.get("input_schema", {})
        openai_tools.append({"type": "function", "function": function})
    return openai_tools


def map_tool_choice(tool_choice: Any) -> str | dict[str, Any] | None:
    """Convert Anthropic tool_choice to OpenAI format.

    {"type": "any"} -> "required"
    {"type": "tool", "name": "f"} -> {"type": "function", "function": {"name": "f"}}
    anything else -> the bare type string ("auto", "none", ...)
    """
    if tool_choice is None:
        return None
    if isinstance(tool_choice, str):
        choice_type = tool_choice
        name = None
    elif isinstance(tool_choice, Mapping):
        choice_type = tool_choice.get("type")
        name = tool_choice.get("name")
    else:
        raise InvalidRequestError("tool_choice must be an object")

    if choice_type == "any":
        return "required"
    if choice_type == "tool" and name:
        return {"type": "function", "function": {"name": name}}
    return choice_type


def messages_to_chat_completions(
    payload: Mapping[str, Any], backend_model: str
) -> dict[str, Any]:
    """Translate an Anthropic Messages request to an OpenAI Chat Completions request.

    Args:
        payload: Anthropic Messages API request body
        backend_model: Backend model id that replaces the caller's alias

    Returns:
        OpenAI Chat Completions API request body
    """
    openai_messages: list[dict[str, Any]] = []
    system_message = map_system(payload.get("system"))
    if system_message:
        openai_messages.append(system_message)
    openai_messages.extend(map_messages(payload.get("messages")))

    result: dict[str, Any] = {
        "model": backend_model,
        "messages": openai_messages,
    }

    if "stream" in payload:
        result["stream"] = bool(payload["stream"])

    for param in PASSTHROUGH_PARAMS:
        if payload.get(param) is not None:
            result[param] = payload[param]

    if payload.get("stop_sequences"):
        result["stop"] = payload["stop_sequences"]

    if "top_k" in payload:
        logger.debug(f"top_k={payload['top_k']} is not supported by the backend, ignoring")

    tools = map_tools(payload.get("tools"))
    if tools:
        result["tools"] = tools
        tool_choice = map_tool_choice(payload.get("tool_choice"))
        if tool_choice is not None:
            result["tool_choice"] = tool_choice

    return result


def map_stop_reason(finish_reason: str | None) -> str:
    """Convert an OpenAI finish_reason to an Anthropic stop_reason.

    Only tool calls are distinguished; every other reason ends the turn.
    """
    if finish_reason == "tool_calls":
        return "tool_use"
    return "end_turn"


def _parse_tool_arguments(call_id: str, arguments: Any) -> Any:
    if not isinstance(arguments, str):
        return arguments
    try:
        return json.loads(arguments)
    except json.JSONDecodeError as exc:
        raise MalformedToolArgumentsError(call_id, arguments, str(exc)) from exc


def _response_blocks(message: Mapping[str, Any]) -> list[ContentBlock]:
    blocks: list[ContentBlock] = []

    content = message.get("content")
    if isinstance(content, str):
        if content:
            blocks.append(TextBlock(text=content))
    elif isinstance(content, list):
        for part in content:
            if isinstance(part, Mapping) and part.get("type") == "text" and part.get("text"):
                blocks.append(TextBlock(text=str(part["text"])))

    tool_calls = message.get("tool_calls") or []
    if not isinstance(tool_calls, list):
        raise UpstreamError("Backend response is malformed: tool_calls is not a list")
    for call in tool_calls:
        if not isinstance(call, Mapping):
            raise UpstreamError("Backend response is malformed: invalid tool call")
        function = call.get("function") or {}
        if not isinstance(function, Mapping):
            raise UpstreamError("Backend response is malformed: invalid tool call")
        call_id = str(call.get("id") or "")
        blocks.append(ToolUseBlock(
            id=call_id,
            name=str(function.get("name") or ""),
            input=_parse_tool_arguments(call_id, function.get("arguments")),
        ))
    return blocks


def chat_completion_to_messages(
    payload: Mapping[str, Any], model_name: str
) -> dict[str, Any]:
    """Translate an OpenAI Chat Completions response to an Anthropic message.

    Args:
        payload: OpenAI Chat Completions API response body
        model_name: Model name the caller asked for, echoed back

    Returns:
        Anthropic Messages API response body

    Raises:
        MalformedToolArgumentsError: If a tool call's arguments are not JSON.
        UpstreamError: If the response does not have the chat completion shape.
    """
    choices = payload.get("choices") or []
    if not isinstance(choices, list):
        raise UpstreamError("Backend response is malformed: choices is not a list")
    choice = choices[0] if choices else {}
    if not isinstance(choice, Mapping):
        raise UpstreamError("Backend response is malformed: invalid choice")
    message = choice.get("message") or {}
    usage = payload.get("usage") or {}
    if not isinstance(message, Mapping) or not isinstance(usage, Mapping):
        raise UpstreamError("Backend response is malformed: invalid message")

    return {
        "id": f"{MESSAGE_ID_PREFIX}{payload.get('id', '')}",
        "type": "message",
        "role": "assistant",
        "model": model_name,
        "content": [block_to_wire(block) for block in _response_blocks(message)],
        "stop_reason": map_stop_reason(choice.get("finish_reason")),
        "stop_sequence": None,
        "usage": {
            "input_tokens": usage.get("prompt_tokens") or 0,
            "output_tokens": usage.get("completion_tokens") or 0,
        },
    }
