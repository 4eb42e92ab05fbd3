"""Tests for gateway exceptions."""

from llmgate.core.exceptions import (
    ClientDisconnectedError,
    GatewayError,
    InvalidRequestError,
    MalformedToolArgumentsError,
    ModelNotSupportedError,
    UpstreamError,
)


def test_model_not_supported_message():
    exc = ModelNotSupportedError("ghost")

    assert isinstance(exc, GatewayError)
    assert str(exc) == "Model ghost not supported"


def test_malformed_tool_arguments_is_upstream_failure():
    exc = MalformedToolArgumentsError("call_1", "{bad", "Expecting value")

    assert isinstance(exc, UpstreamError)
    assert exc.status_code is None
    assert exc.arguments == "{bad"
    assert "call_1" in exc.message


def test_invalid_request_default_code():
    assert InvalidRequestError("bad").code == "invalid_request"


def test_client_disconnected_default_message():
    assert ClientDisconnectedError().message == "client disconnected"
