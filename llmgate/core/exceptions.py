"""Core exceptions for the gateway."""

from typing import Optional


class GatewayError(Exception):
    """Base exception for gateway errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(GatewayError):
    """Raised when there's an issue with the configuration."""
    pass


class ModelNotSupportedError(GatewayError):
    """Raised when a requested model name is not in the model table."""

    def __init__(self, model_name: str) -> None:
        super().__init__(f"Model {model_name} not supported")
        self.model_name = model_name


class InvalidRequestError(GatewayError):
    """Raised when an incoming request is invalid."""

    def __init__(self, message: str, code: str = "invalid_request") -> None:
        super().__init__(message)
        self.code = code


class UpstreamError(GatewayError):
    """Raised when the backend call fails or returns an error."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedToolArgumentsError(UpstreamError):
    """Backend returned tool-call arguments that are not valid JSON."""

    def __init__(self, tool_call_id: str, arguments: str, reason: str) -> None:
        super().__init__(
            f"Tool call {tool_call_id} has malformed arguments: {reason}"
        )
        self.tool_call_id = tool_call_id
        self.arguments = arguments


class ClientDisconnectedError(GatewayError):
    """The caller went away while the backend stream was still open."""

    def __init__(self, message: str = "client disconnected") -> None:
        super().__init__(message)
