"""Core module initialization."""

from .backend import (
    Backend,
    BackendClient,
    BackendStream,
    build_base_url,
    create_backend_client,
    format_httpx_error,
)
from .exceptions import (
    ClientDisconnectedError,
    ConfigurationError,
    GatewayError,
    InvalidRequestError,
    MalformedToolArgumentsError,
    ModelNotSupportedError,
    UpstreamError,
)
from .models import Model, ModelRegistry
from .registry import get_settings, set_settings

__all__ = [
    "Backend",
    "BackendClient",
    "BackendStream",
    "ClientDisconnectedError",
    "ConfigurationError",
    "GatewayError",
    "InvalidRequestError",
    "MalformedToolArgumentsError",
    "Model",
    "ModelNotSupportedError",
    "ModelRegistry",
    "UpstreamError",
    "build_base_url",
    "create_backend_client",
    "format_httpx_error",
    "get_settings",
    "set_settings",
]
