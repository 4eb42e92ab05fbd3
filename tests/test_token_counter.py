"""Tests for the approximate input token counter."""

import pytest

from llmgate.core.exceptions import InvalidRequestError
from llmgate.messages.token_counter import (
    estimate_input_tokens,
    estimate_text_tokens,
    text_length,
)


@pytest.mark.parametrize("text, expected", [("", 0), ("a", 1), ("abcd", 1), ("abcde", 2)])
def test_estimate_text_tokens(text, expected):
    assert estimate_text_tokens(text) == expected


@pytest.mark.parametrize(
    "text, length",
    [("abc", 3), ("\u00e9t\u00e9", 3), ("\U0001F389", 2), ("a\U0001F600b", 4), ("\ud800", 1)],
    ids=["ascii", "bmp", "emoji", "mixed", "lone-surrogate"],
)
def test_text_length_counts_utf16_code_units(text, length):
    assert text_length(text) == length


def test_emoji_counts_as_two_units():
    # two astral characters are four UTF-16 units, one token
    assert estimate_text_tokens("\U0001F389\U0001F389") == 1
    assert estimate_text_tokens("\U0001F389\U0001F389\U0001F389") == 2


def test_system_and_one_message():
    payload = {"system": "abcd", "messages": [{"role": "user", "content": "abcd"}]}

    # 1 (system) + 1 (content) + 4 (message overhead)
    assert estimate_input_tokens(payload) == 6


def test_block_content_counts_every_kind():
    payload = {
        "messages": [
            {
                "role": "assistant",
                "content": [
                    {"type": "text", "text": "abcdefgh"},
                    {"type": "tool_use", "id": "t1", "name": "f", "input": {"a": 1}},
                ],
            },
            {
                "role": "user",
                "content": [
                    {"type": "tool_result", "tool_use_id": "t1", "content": "abcd"},
                    {"type": "tool_result", "tool_use_id": "t2", "content": [{"type": "text", "text": "ab"}]},
                ],
            },
        ],
    }

    # assistant: 2 + 1 ("f") + 2 ('{"a":1}' is 7 chars) + 4
    # user: 1 + 1 + 4
    assert estimate_input_tokens(payload) == 9 + 6


def test_tools_counted():
    payload = {
        "messages": [],
        "tools": [{"name": "abcd", "description": "abcdefgh", "input_schema": {}}],
    }

    # name 1 + description 2 + "{}" 1
    assert estimate_input_tokens(payload) == 4


def test_system_blocks_counted():
    payload = {"system": [{"type": "text", "text": "abcdefgh"}], "messages": []}

    assert estimate_input_tokens(payload) == 2


def test_empty_request_is_zero():
    assert estimate_input_tokens({}) == 0


def test_stable_for_same_input():
    payload = {"system": "s" * 37, "messages": [{"role": "user", "content": "x" * 101}]}

    assert estimate_input_tokens(payload) == estimate_input_tokens(payload)


def test_invalid_messages_rejected():
    with pytest.raises(InvalidRequestError):
        estimate_input_tokens({"messages": "nope"})
