"""API routes for the gateway."""

from .chat import chat_completions, handle_chat_request
from .messages import count_tokens_endpoint, messages_endpoint
from .models import list_models

__all__ = [
    "chat_completions",
    "count_tokens_endpoint",
    "handle_chat_request",
    "list_models",
    "messages_endpoint",
]
