"""Access logging for inbound requests."""

import logging
import re
import time

from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("llmgate")

_PATH_TOKEN_PATTERN = re.compile(r"^/jb/[^/]+")


def mask_path(path: str) -> str:
    """Hide the gateway token carried in ``/jb/{token}`` paths."""
    return _PATH_TOKEN_PATTERN.sub("/jb/***", path)


class RequestLoggingMiddleware:
    """Logs method, path, status and elapsed time for every HTTP request.

    Written as a plain ASGI middleware so streamed bodies and client
    disconnect detection pass through untouched.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.perf_counter()
        method = scope.get("method", "?")
        path = mask_path(scope.get("path", ""))
        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.info(f"{method} {path} -> {status_code} ({elapsed_ms:.1f}ms)")
