"""Authentication module for llmgate."""

from .gateway_token import (
    GatewayAuthContext,
    GatewayTokenValidator,
    get_gateway_token_validator,
    verify_gateway_token,
)

__all__ = [
    "GatewayAuthContext",
    "GatewayTokenValidator",
    "get_gateway_token_validator",
    "verify_gateway_token",
]
