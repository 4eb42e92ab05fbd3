"""Gateway token authentication for inbound requests.

Two mount points share the same handlers: the root mount expects an
``Authorization: Bearer <token>`` header, and the ``/jb/{token}`` mount
carries the token in the path for clients that cannot set headers.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request

from ..core.registry import get_settings

logger = logging.getLogger("llmgate")

PATH_TOKEN_PARAM = "token"


@dataclass
class GatewayAuthContext:
    """How the caller authenticated."""

    method: str
    authenticated: bool


def _unauthorized(message: str, code: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={
            "error": {
                "message": message,
                "type": "authentication_error",
                "code": code,
            }
        },
        headers={"WWW-Authenticate": "Bearer"},
    )


def extract_bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
        return token or None
    return None


class GatewayTokenValidator:
    """Checks the caller's token against the configured gateway secret."""

    def __init__(self, secret: Optional[str] = None) -> None:
        self._secret = secret

    def _get_secret(self) -> str:
        if self._secret is not None:
            return self._secret
        return get_settings().proxy_api_key

    def _matches(self, provided: str) -> bool:
        secret = self._get_secret()
        if not secret:
            return False
        return hmac.compare_digest(provided.encode("utf-8"), secret.encode("utf-8"))

    def validate_request(self, request: Request) -> GatewayAuthContext:
        """Validate an incoming request.

        Raises:
            HTTPException: 401 for a missing or mismatched token.
        """
        path_token = request.path_params.get(PATH_TOKEN_PARAM)
        if path_token is not None:
            if not self._matches(str(path_token)):
                logger.warning("Request rejected: invalid path token")
                raise _unauthorized("Unauthorized", "invalid_path_token")
            return GatewayAuthContext(method="path_token", authenticated=True)

        provided = extract_bearer_token(request)
        if not provided:
            logger.warning("Request rejected: missing bearer token")
            raise _unauthorized("Bearer token required", "missing_api_key")
        if not self._matches(provided):
            logger.warning("Request rejected: invalid bearer token")
            raise _unauthorized("Invalid bearer token", "invalid_api_key")
        return GatewayAuthContext(method="bearer", authenticated=True)


_validator = GatewayTokenValidator()


def get_gateway_token_validator() -> GatewayTokenValidator:
    return _validator


async def verify_gateway_token(request: Request) -> GatewayAuthContext:
    """FastAPI dependency guarding every authenticated route."""
    return get_gateway_token_validator().validate_request(request)
