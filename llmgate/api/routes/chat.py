"""OpenAI-compatible chat completions endpoint."""

import json
import logging
from typing import Any, AsyncIterator, Mapping

from fastapi import Request, Response
from fastapi.responses import JSONResponse, StreamingResponse

from ...core import BackendStream, create_backend_client
from ...core.exceptions import ClientDisconnectedError, ModelNotSupportedError, UpstreamError
from ...core.registry import get_settings
from ...core.sse import DONE_SENTINEL, format_sse_data

logger = logging.getLogger("llmgate")


def _openai_error_response(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse({"error": {"message": message}}, status_code=status_code)


async def _passthrough_stream(
    stream: BackendStream, request: Request, model_name: str
) -> AsyncIterator[bytes]:
    """Re-emit backend chunks as OpenAI SSE, ending with ``[DONE]``.

    A failure after the first byte truncates the stream.
    """
    completed = False
    try:
        async for chunk in stream.iter_chunks(request.is_disconnected):
            yield format_sse_data(chunk)
        completed = True
    except ClientDisconnectedError:
        logger.info(f"Client disconnected during chat stream for model {model_name}")
    except UpstreamError as exc:
        logger.error(f"Chat stream for model {model_name} failed mid-stream: {exc.message}")
    finally:
        await stream.aclose()
    if completed:
        yield format_sse_data(DONE_SENTINEL)


async def handle_chat_request(request: Request) -> Response:
    """Resolve the model, substitute its backend id and forward the request.

    Args:
        request: The FastAPI request object.

    Returns:
        The backend JSON body, a passthrough SSE stream, or an
        ``{"error": {"message": ...}}`` envelope.
    """
    body = await request.body()
    try:
        payload = json.loads(body or b"{}")
    except json.JSONDecodeError as exc:
        logger.error(f"Invalid JSON payload: {exc}")
        return _openai_error_response("Invalid JSON payload")
    if not isinstance(payload, Mapping):
        return _openai_error_response("Request body must be a JSON object")

    model_name = payload.get("model")
    if not isinstance(model_name, str) or not model_name:
        return _openai_error_response("You must provide a model parameter")

    settings = get_settings()
    try:
        model = settings.registry.resolve(model_name)
    except ModelNotSupportedError as exc:
        logger.warning(exc.message)
        return _openai_error_response(exc.message)

    is_stream = bool(payload.get("stream"))
    forwarded: dict[str, Any] = {**payload, "model": model.id}
    logger.info(f"Processing chat request for model {model_name} -> {model.id}, stream={is_stream}")

    client = create_backend_client(settings, model)
    try:
        if is_stream:
            stream = await client.open_chat_completion_stream(forwarded)
        else:
            result = await client.create_chat_completion(forwarded)
    except UpstreamError as exc:
        logger.error(f"Chat request for model {model_name} failed: {exc.message}")
        return _openai_error_response(exc.message, status_code=500)

    if is_stream:
        return StreamingResponse(
            _passthrough_stream(stream, request, model_name),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )
    return JSONResponse(result)


async def chat_completions(request: Request) -> Response:
    """Chat completions endpoint - OpenAI compatible.

    POST /chat/completions
    """
    logger.info("Received chat completions request")
    return await handle_chat_request(request)
