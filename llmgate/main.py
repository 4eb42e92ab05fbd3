"""Main FastAPI application for the llmgate gateway."""

import logging
import socket
from typing import Optional

from fastapi import Depends, FastAPI

from .api.routes import chat_completions, count_tokens_endpoint, list_models, messages_endpoint
from .auth import verify_gateway_token
from .config_loader import Settings, load_settings
from .core.registry import set_settings
from .logging import setup_logging
from .middleware import RequestLoggingMiddleware

logger = logging.getLogger("llmgate")

# "" is the bearer-token mount; "/jb/{token}" carries the token in the path.
MOUNT_PREFIXES = ("", "/jb/{token}")


def _register_routes(app: FastAPI, prefix: str) -> None:
    auth = [Depends(verify_gateway_token)]
    app.post(f"{prefix}/chat/completions", dependencies=auth)(chat_completions)
    app.post(f"{prefix}/v1/chat/completions", dependencies=auth)(chat_completions)
    app.get(f"{prefix}/models", dependencies=auth)(list_models)
    app.get(f"{prefix}/v1/models", dependencies=auth)(list_models)
    app.post(f"{prefix}/v1/messages", dependencies=auth)(messages_endpoint)
    app.post(f"{prefix}/v1/messages/count_tokens", dependencies=auth)(count_tokens_endpoint)


async def health() -> dict:
    return {"status": "ok"}


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Factory function to create the FastAPI application.

    Args:
        settings: Pre-built settings. Loaded from the environment and the
            optional YAML config when omitted.

    Returns:
        The configured FastAPI application instance.
    """
    if settings is None:
        settings = load_settings()
    setup_logging(settings.log_level)
    set_settings(settings)

    app = FastAPI(title="llmgate")
    app.add_middleware(RequestLoggingMiddleware)

    for prefix in MOUNT_PREFIXES:
        _register_routes(app, prefix)
    app.get("/health")(health)

    @app.on_event("startup")
    async def startup_event():
        """Handle application startup."""
        logger.info("llmgate starting up...")
        logger.info("Configured bind address %s:%s", settings.server_host, settings.server_port)
        if settings.server_host == "0.0.0.0":
            hostname = socket.gethostname()
            logger.info("Reachable on local network at http://%s:%s", hostname, settings.server_port)
        logger.info("Gateway host: %s", settings.gateway_host)
        for model in settings.registry.models:
            logger.info(f"  - {model.name}: {model.id} ({model.endpoint})")
        logger.info("llmgate ready to handle requests")

    logger.info(f"FastAPI application created with {len(settings.registry)} models")
    return app


__all__ = ["MOUNT_PREFIXES", "create_app"]
