"""llmgate - an OpenAI and Anthropic compatible front door for one gateway.

Callers address models by alias; each request is resolved against the
configured model table and forwarded to the gateway's OpenAI-compatible
chat completions endpoint. Anthropic Messages requests are translated in
both directions, including streamed responses.

Example:
    >>> from llmgate import create_app, load_settings
    >>> import uvicorn
    >>> settings = load_settings()
    >>> uvicorn.run(create_app(settings), host=settings.server_host, port=settings.server_port)
"""

from .config_loader import Settings, load_settings
from .core import Model, ModelRegistry
from .logging import logger, setup_logging
from .main import create_app

__all__ = [
    "Model",
    "ModelRegistry",
    "Settings",
    "create_app",
    "load_settings",
    "logger",
    "setup_logging",
]
