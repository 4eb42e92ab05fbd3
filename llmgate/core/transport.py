"""Per-host HTTPX transport overrides for in-process backends (tests, simulations)."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

logger = logging.getLogger("llmgate")

_TRANSPORTS: dict[str, httpx.AsyncBaseTransport] = {}


def _host_key(value: str) -> str:
    return value.strip().lower()


def register_backend_transport(host: str, transport: httpx.AsyncBaseTransport) -> None:
    """Route every backend call for ``host`` (netloc, e.g. 'gateway.local') through ``transport``."""
    if not host:
        raise ValueError("host is required")
    _TRANSPORTS[_host_key(host)] = transport
    logger.debug("Registered backend transport for host '%s'", host)


def clear_backend_transports() -> None:
    """Drop all registered transports."""
    _TRANSPORTS.clear()


def get_backend_transport(url: str) -> Optional[httpx.AsyncBaseTransport]:
    """Return the transport registered for the URL's netloc, if any."""
    host = urlparse(url).netloc if url else ""
    if not host:
        return None
    return _TRANSPORTS.get(_host_key(host))
