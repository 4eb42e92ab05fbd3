"""Anthropic-compatible Messages API endpoint."""

import json
import logging
import time
import uuid
from typing import Any, AsyncIterator, Mapping

from fastapi import Request, Response
from fastapi.responses import JSONResponse, StreamingResponse

from ...core import BackendStream, create_backend_client
from ...core.exceptions import (
    ClientDisconnectedError,
    InvalidRequestError,
    ModelNotSupportedError,
    UpstreamError,
)
from ...core.registry import get_settings
from ...core.sse import format_sse_event
from ...messages import (
    ChatToMessagesStreamAdapter,
    chat_completion_to_messages,
    estimate_input_tokens,
    messages_to_chat_completions,
    new_message_id,
)

logger = logging.getLogger("llmgate")


def _anthropic_error_response(
    message: str,
    *,
    error_type: str = "invalid_request_error",
    status_code: int = 400,
) -> JSONResponse:
    payload = {"type": "error", "error": {"type": error_type, "message": message}}
    return JSONResponse(payload, status_code=status_code)


def _api_error_response(message: str) -> JSONResponse:
    return _anthropic_error_response(message, error_type="api_error", status_code=500)


async def _read_payload(request: Request) -> Mapping[str, Any]:
    body = await request.body()
    try:
        payload = json.loads(body or b"{}")
    except json.JSONDecodeError as exc:
        raise InvalidRequestError("Invalid JSON payload", code="invalid_json") from exc
    if not isinstance(payload, Mapping):
        raise InvalidRequestError("Request body must be a JSON object", code="invalid_json_shape")
    return payload


async def _adapted_stream(
    req_id: str,
    adapter: ChatToMessagesStreamAdapter,
    stream: BackendStream,
    request: Request,
) -> AsyncIterator[bytes]:
    """Wrap the backend stream and convert it to Anthropic events.

    A backend failure after the first byte becomes a single ``error`` event;
    a client disconnect ends the stream without further output.
    """
    try:
        async for event in adapter.adapt_stream(stream.iter_chunks(request.is_disconnected)):
            yield event
    except ClientDisconnectedError:
        logger.info(f"[{req_id}] Client disconnected, backend stream aborted")
    except UpstreamError as exc:
        logger.error(f"[{req_id}] Backend stream failed: {exc.message}")
        yield format_sse_event(
            "error",
            {"type": "error", "error": {"type": "api_error", "message": exc.message}},
        )
    finally:
        await stream.aclose()


async def messages_endpoint(request: Request) -> Response:
    """POST /v1/messages - Anthropic Messages API compatible endpoint."""
    # Request ID for log correlation
    req_id = uuid.uuid4().hex[:8]
    start_time = time.perf_counter()
    client_host = request.client.host if request.client else "unknown"
    logger.info(f"[{req_id}] Messages API request from {client_host}")

    try:
        payload = await _read_payload(request)
    except InvalidRequestError as exc:
        logger.error(f"[{req_id}] {exc.message}")
        return _anthropic_error_response(exc.message)

    model_name = payload.get("model")
    if not isinstance(model_name, str) or not model_name:
        return _anthropic_error_response("You must provide a model parameter")

    settings = get_settings()
    try:
        model = settings.registry.resolve(model_name)
    except ModelNotSupportedError as exc:
        logger.warning(f"[{req_id}] {exc.message}")
        return _anthropic_error_response(exc.message)

    try:
        openai_payload = messages_to_chat_completions(payload, model.id)
    except InvalidRequestError as exc:
        logger.error(f"[{req_id}] Failed to translate messages request: {exc.message}")
        return _anthropic_error_response(exc.message)

    is_stream = bool(openai_payload.get("stream"))
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            f"[{req_id}] Translated to OpenAI format: model={model.id}, "
            f"messages_count={len(openai_payload['messages'])}, stream={is_stream}"
        )

    client = create_backend_client(settings, model)

    if is_stream:
        try:
            stream = await client.open_chat_completion_stream(openai_payload)
        except UpstreamError as exc:
            logger.error(f"[{req_id}] Backend rejected streaming request: {exc.message}")
            return _api_error_response(exc.message)

        elapsed = time.perf_counter() - start_time
        logger.info(
            f"[{req_id}] Starting translated streaming response for {model_name}, "
            f"setup took {elapsed:.3f}s"
        )
        adapter = ChatToMessagesStreamAdapter(new_message_id(), model_name)
        return StreamingResponse(
            _adapted_stream(req_id, adapter, stream, request),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    try:
        openai_response = await client.create_chat_completion(openai_payload)
        anthropic_response = chat_completion_to_messages(openai_response, model_name)
    except UpstreamError as exc:
        logger.error(f"[{req_id}] Messages request for {model_name} failed: {exc.message}")
        return _api_error_response(exc.message)

    elapsed = time.perf_counter() - start_time
    logger.info(
        f"[{req_id}] Completed translated non-streaming response for {model_name}, "
        f"took {elapsed:.3f}s"
    )
    return JSONResponse(anthropic_response)


async def count_tokens_endpoint(request: Request) -> Response:
    """POST /v1/messages/count_tokens - approximate input token count."""
    try:
        payload = await _read_payload(request)
        input_tokens = estimate_input_tokens(payload)
    except InvalidRequestError as exc:
        logger.error(f"Error in count_tokens: {exc.message}")
        return _anthropic_error_response(exc.message)
    logger.debug(f"Estimated {input_tokens} input tokens")
    return JSONResponse({"input_tokens": input_tokens})
