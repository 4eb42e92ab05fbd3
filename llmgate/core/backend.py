"""Backend client factory and HTTP calls to the chat-completion service."""

import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Iterator, Mapping, Optional

import httpx

from .exceptions import ClientDisconnectedError, UpstreamError
from .models import Model
from .sse import DONE_SENTINEL, SSEDecoder, SSEEvent, detect_sse_stream_error
from .transport import get_backend_transport

logger = logging.getLogger("llmgate")

DEFAULT_TIMEOUT = 60.0
PROVIDER_AUTH_HEADER = "cf-aig-authorization"
CHAT_COMPLETIONS_PATH = "/chat/completions"

DisconnectChecker = Callable[[], Awaitable[bool]]


@dataclass(frozen=True)
class Backend:
    """Connection details for one resolved model."""

    model: Model
    base_url: str
    provider_key: str
    timeout: float = DEFAULT_TIMEOUT

    @property
    def chat_completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{CHAT_COMPLETIONS_PATH}"

    def build_headers(self, *, is_stream: bool = False) -> dict[str, str]:
        """Headers for the backend call.

        Only the provider header carries credentials; no ``Authorization``
        header is ever sent to the backend.
        """
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream" if is_stream else "application/json",
            "Accept-Encoding": "identity",
        }
        if self.provider_key:
            headers[PROVIDER_AUTH_HEADER] = f"Bearer {self.provider_key}"
        return headers


def build_base_url(gateway_host: str, endpoint: str) -> str:
    """Join the gateway host and a model's endpoint suffix."""
    host = gateway_host.rstrip("/")
    suffix = endpoint.strip()
    if suffix and not suffix.startswith("/"):
        suffix = f"/{suffix}"
    return f"{host}{suffix}"


def format_httpx_error(exc: Exception, url: Optional[str] = None, timeout: Optional[float] = None) -> str:
    """Produce a detailed, user-facing description of an httpx error."""
    parts = [exc.__class__.__name__]
    message = str(exc).strip()
    if message:
        parts.append(message)

    request = getattr(exc, "_request", None)
    if request is not None:
        parts.append(f"request={request.method} {request.url}")
    elif url:
        parts.append(f"url={url}")

    if isinstance(exc, httpx.TimeoutException) and timeout:
        parts.append(f"timeout={timeout}s")

    return "; ".join(parts)


def extract_error_message(status_code: int, body: bytes) -> str:
    """Pull the backend's own error message out of an error response body."""
    text = body.decode("utf-8", errors="replace").strip()
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        payload = None
    if isinstance(payload, Mapping):
        error = payload.get("error")
        if isinstance(error, Mapping) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if payload.get("message"):
            return str(payload["message"])
    return text or f"Backend returned status {status_code}"


class BackendStream:
    """An open streaming response from the backend.

    Yields parsed chunk objects. Closing it aborts the underlying HTTP
    request; it is safe to close more than once.
    """

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response, url: str) -> None:
        self._client = client
        self._response = response
        self._url = url
        self._closed = False
        self.saw_done = False

    async def iter_chunks(
        self, disconnect_checker: Optional[DisconnectChecker] = None
    ) -> AsyncIterator[dict[str, Any]]:
        """Iterate decoded chunk payloads in arrival order.

        Raises:
            ClientDisconnectedError: The caller disconnected mid-stream.
            UpstreamError: Transport failure or an error payload in the stream.
        """
        decoder = SSEDecoder()
        stream = self._response.aiter_bytes()
        chunk_count = 0
        try:
            while True:
                if disconnect_checker and await disconnect_checker():
                    logger.info("Client disconnected; aborting backend stream %s", self._url)
                    raise ClientDisconnectedError()
                try:
                    raw = await stream.__anext__()
                except StopAsyncIteration:
                    break
                chunk_count += 1
                for payload in self._decode(decoder.feed(raw)):
                    yield payload
            for payload in self._decode(decoder.flush()):
                yield payload
        except httpx.HTTPError as exc:
            message = format_httpx_error(exc, self._url)
            logger.error(f"Backend stream from {self._url} failed after {chunk_count} chunks: {message}")
            raise UpstreamError(message) from exc
        logger.debug(f"Backend stream from {self._url} finished after {chunk_count} chunks")

    def _decode(self, events: list[SSEEvent]) -> Iterator[dict[str, Any]]:
        for event in events:
            if event.data is None:
                continue
            data_str = event.data.strip()
            if not data_str:
                continue
            if data_str == DONE_SENTINEL:
                self.saw_done = True
                continue
            try:
                payload = json.loads(data_str)
            except json.JSONDecodeError:
                logger.debug(f"Skipping unparseable stream data: {data_str[:100]}")
                continue
            error = detect_sse_stream_error(payload)
            if error:
                raise UpstreamError(error)
            if isinstance(payload, dict):
                yield payload

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        logger.debug(f"Closing backend stream for {self._url}")
        try:
            await self._response.aclose()
        finally:
            await self._client.aclose()


class BackendClient:
    """Issues chat-completion calls for one resolved model."""

    def __init__(self, backend: Backend) -> None:
        self.backend = backend

    @property
    def url(self) -> str:
        return self.backend.chat_completions_url

    def _encode(self, payload: Mapping[str, Any]) -> bytes:
        return json.dumps(payload, ensure_ascii=False).encode("utf-8")

    async def create_chat_completion(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """POST a non-streaming request and return the decoded JSON body.

        Raises:
            UpstreamError: On transport failure, error status or a non-JSON body.
        """
        url = self.url
        timeout = self.backend.timeout
        logger.debug(f"Sending non-streaming request to {url} (model={payload.get('model')})")
        try:
            async with httpx.AsyncClient(
                timeout=timeout, transport=get_backend_transport(url), follow_redirects=True
            ) as client:
                resp = await client.post(
                    url,
                    headers=self.backend.build_headers(is_stream=False),
                    content=self._encode(payload),
                )
        except httpx.HTTPError as exc:
            message = format_httpx_error(exc, url, timeout)
            logger.error(f"Backend request to {url} failed: {message}")
            raise UpstreamError(message) from exc

        logger.debug(f"Received response from {url}: status {resp.status_code}")
        if resp.status_code >= 400:
            message = extract_error_message(resp.status_code, resp.content)
            logger.warning(f"Backend {url} returned status {resp.status_code}: {message}")
            raise UpstreamError(message, status_code=resp.status_code)

        try:
            body = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise UpstreamError(f"Backend returned invalid JSON: {exc}") from exc
        if not isinstance(body, dict):
            raise UpstreamError("Backend response must be a JSON object")
        return body

    async def open_chat_completion_stream(self, payload: Mapping[str, Any]) -> BackendStream:
        """Send a streaming request and return the open stream.

        The status code is checked before returning so that a rejected
        request can still be reported as a normal error response.

        Raises:
            UpstreamError: On transport failure or error status.
        """
        url = self.url
        timeout = self.backend.timeout
        stream_timeout = httpx.Timeout(connect=timeout, read=None, write=timeout, pool=timeout)
        client = httpx.AsyncClient(
            timeout=stream_timeout, transport=get_backend_transport(url), follow_redirects=True
        )
        try:
            request = client.build_request(
                "POST",
                url,
                headers=self.backend.build_headers(is_stream=True),
                content=self._encode(payload),
            )
            logger.debug(f"Sending streaming request to {url} (model={payload.get('model')})")
            resp = await client.send(request, stream=True)
        except httpx.HTTPError as exc:
            await client.aclose()
            message = format_httpx_error(exc, url, timeout)
            logger.error(f"Failed to open backend stream to {url}: {message}")
            raise UpstreamError(message) from exc
        except BaseException:
            await client.aclose()
            raise

        if resp.status_code >= 400:
            try:
                data = await resp.aread()
            finally:
                await resp.aclose()
                await client.aclose()
            message = extract_error_message(resp.status_code, data)
            logger.warning(f"Streaming request to {url} returned status {resp.status_code}: {message}")
            raise UpstreamError(message, status_code=resp.status_code)

        logger.info(f"Streaming request to {url} accepted, status {resp.status_code}")
        return BackendStream(client, resp, url)


def create_backend_client(settings: Any, model: Model) -> BackendClient:
    """Client factory: build a backend client for a resolved model."""
    backend = Backend(
        model=model,
        base_url=build_base_url(settings.gateway_host, model.endpoint),
        provider_key=settings.gateway_key,
        timeout=settings.request_timeout or DEFAULT_TIMEOUT,
    )
    return BackendClient(backend)
