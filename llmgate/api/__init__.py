"""API module for the gateway."""

from .routes import (
    chat_completions,
    count_tokens_endpoint,
    handle_chat_request,
    list_models,
    messages_endpoint,
)

__all__ = [
    "chat_completions",
    "count_tokens_endpoint",
    "handle_chat_request",
    "list_models",
    "messages_endpoint",
]
