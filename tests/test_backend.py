"""Tests for the backend client."""

import httpx
import pytest

from conftest import BACKEND_PATH, GATEWAY_KEY, build_settings
from llmgate.core.backend import (
    PROVIDER_AUTH_HEADER,
    Backend,
    build_base_url,
    create_backend_client,
    extract_error_message,
    format_httpx_error,
)
from llmgate.core.exceptions import ClientDisconnectedError, UpstreamError
from llmgate.core.models import Model
from llmgate.testing import UpstreamResponse

MODEL = Model(id="backend-m", name="m", endpoint="/v1/acct/gw/compat")


class TestBackend:
    def test_chat_completions_url(self):
        backend = Backend(model=MODEL, base_url="https://gw.example/v1/acct/gw/compat/", provider_key="k")

        assert backend.chat_completions_url == "https://gw.example/v1/acct/gw/compat/chat/completions"

    def test_headers_never_carry_authorization(self):
        backend = Backend(model=MODEL, base_url="https://gw.example", provider_key="k")

        headers = backend.build_headers(is_stream=True)

        assert headers[PROVIDER_AUTH_HEADER] == "Bearer k"
        assert headers["Accept"] == "text/event-stream"
        assert "Authorization" not in headers

    @pytest.mark.parametrize(
        "host, endpoint, expected",
        [
            ("https://gw.example/", "/v1/x", "https://gw.example/v1/x"),
            ("https://gw.example", "v1/x", "https://gw.example/v1/x"),
            ("https://gw.example", "", "https://gw.example"),
        ],
    )
    def test_build_base_url(self, host, endpoint, expected):
        assert build_base_url(host, endpoint) == expected


class TestErrorFormatting:
    def test_extract_error_message_prefers_backend_message(self):
        assert extract_error_message(400, b'{"error": {"message": "bad model"}}') == "bad model"

    def test_extract_error_message_falls_back_to_text(self):
        assert extract_error_message(502, b"Bad Gateway") == "Bad Gateway"
        assert extract_error_message(502, b"") == "Backend returned status 502"

    def test_format_httpx_error_includes_timeout(self):
        message = format_httpx_error(httpx.ReadTimeout("slow"), "http://x/y", 5)

        assert message.startswith("ReadTimeout; slow")
        assert "timeout=5s" in message


@pytest.mark.asyncio
async def test_non_streaming_call_forwards_payload(upstream):
    upstream.enqueue_chat_response("hi")
    client = create_backend_client(build_settings(), MODEL)

    body = await client.create_chat_completion({"model": "backend-m", "messages": []})

    assert body["choices"][0]["message"]["content"] == "hi"
    received = upstream.received[0]
    assert received["path"] == BACKEND_PATH
    assert received["json"] == {"model": "backend-m", "messages": []}
    assert received["headers"][PROVIDER_AUTH_HEADER] == f"Bearer {GATEWAY_KEY}"
    assert "authorization" not in received["headers"]


@pytest.mark.asyncio
async def test_non_streaming_error_status_raises(upstream):
    upstream.enqueue_error_response(429, "slow down")
    client = create_backend_client(build_settings(), MODEL)

    with pytest.raises(UpstreamError) as exc_info:
        await client.create_chat_completion({"model": "backend-m", "messages": []})

    assert exc_info.value.status_code == 429
    assert exc_info.value.message == "slow down"


@pytest.mark.asyncio
async def test_non_streaming_invalid_json_raises(upstream):
    upstream.enqueue(UpstreamResponse(body="not json"))
    client = create_backend_client(build_settings(), MODEL)

    with pytest.raises(UpstreamError, match="invalid JSON"):
        await client.create_chat_completion({"model": "backend-m", "messages": []})


@pytest.mark.asyncio
async def test_stream_yields_decoded_chunks(upstream):
    upstream.enqueue_text_stream(["a", "b"])
    client = create_backend_client(build_settings(), MODEL)

    stream = await client.open_chat_completion_stream({"model": "backend-m", "stream": True})
    try:
        chunks = [chunk async for chunk in stream.iter_chunks()]
    finally:
        await stream.aclose()

    contents = [chunk["choices"][0]["delta"].get("content") for chunk in chunks]
    assert contents == [None, "a", "b", None]
    assert stream.saw_done


@pytest.mark.asyncio
async def test_stream_survives_fragmented_events(upstream):
    upstream.enqueue_stream(
        [{"choices": [{"index": 0, "delta": {"content": "x"}}]}],
        fragment_events=True,
    )
    client = create_backend_client(build_settings(), MODEL)

    stream = await client.open_chat_completion_stream({"model": "backend-m", "stream": True})
    try:
        chunks = [chunk async for chunk in stream.iter_chunks()]
    finally:
        await stream.aclose()

    assert chunks == [{"choices": [{"index": 0, "delta": {"content": "x"}}]}]


@pytest.mark.asyncio
async def test_stream_rejected_before_first_byte(upstream):
    upstream.enqueue(UpstreamResponse(
        status_code=503,
        json_body={"error": {"message": "unavailable"}},
        stream_events=[],
    ))
    client = create_backend_client(build_settings(), MODEL)

    with pytest.raises(UpstreamError) as exc_info:
        await client.open_chat_completion_stream({"model": "backend-m", "stream": True})

    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_stream_error_payload_raises(upstream):
    upstream.enqueue_stream(
        [{"choices": [{"index": 0, "delta": {"content": "x"}}]}, {"choices": []}],
        error_after_events=1,
    )
    client = create_backend_client(build_settings(), MODEL)

    stream = await client.open_chat_completion_stream({"model": "backend-m", "stream": True})
    received = []
    with pytest.raises(UpstreamError, match="upstream exploded"):
        async for chunk in stream.iter_chunks():
            received.append(chunk)
    await stream.aclose()

    assert len(received) == 1


@pytest.mark.asyncio
async def test_stream_stops_when_client_disconnects(upstream):
    upstream.enqueue_text_stream(["a", "b", "c"])
    client = create_backend_client(build_settings(), MODEL)

    async def disconnected() -> bool:
        return True

    stream = await client.open_chat_completion_stream({"model": "backend-m", "stream": True})
    with pytest.raises(ClientDisconnectedError):
        async for _ in stream.iter_chunks(disconnected):
            pass
    await stream.aclose()
    await stream.aclose()
