"""Pytest configuration and fixtures for testing."""

from __future__ import annotations

from typing import Any, AsyncGenerator, Generator

import httpx
import pytest
import pytest_asyncio

from llmgate.config_loader import Settings
from llmgate.core.models import Model, ModelRegistry
from llmgate.core.transport import clear_backend_transports
from llmgate.main import create_app
from llmgate.testing import FakeUpstream

GATEWAY_HOST = "http://gateway.local"
GATEWAY_NETLOC = "gateway.local"
MODEL_ENDPOINT = "/v1/acct/gw/compat"
BACKEND_PATH = f"{MODEL_ENDPOINT}/chat/completions"
PROXY_KEY = "proxy-secret"
GATEWAY_KEY = "cf-secret"
AUTH_HEADERS = {"Authorization": f"Bearer {PROXY_KEY}"}


def build_settings(models: list[Model] | None = None, **overrides: Any) -> Settings:
    """Settings pointing at the fake gateway host."""
    if models is None:
        models = [
            Model(id="backend-m", name="m", endpoint=MODEL_ENDPOINT),
            Model(id="backend-other", name="other", endpoint="/v1/acct/gw/other"),
        ]
    values: dict[str, Any] = {
        "registry": ModelRegistry(models),
        "proxy_api_key": PROXY_KEY,
        "gateway_key": GATEWAY_KEY,
        "gateway_host": GATEWAY_HOST,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def clear_transport_registry() -> Generator[None, None, None]:
    """Clear backend transport registry after test."""
    yield
    clear_backend_transports()


@pytest.fixture
def settings() -> Settings:
    return build_settings()


@pytest.fixture
def upstream(clear_transport_registry: None) -> FakeUpstream:
    """A FakeUpstream answering every call to the fake gateway host."""
    fake = FakeUpstream()
    fake.install(GATEWAY_NETLOC)
    return fake


@pytest.fixture
def app(settings: Settings, upstream: FakeUpstream):
    return create_app(settings)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Async client bound to the gateway app, authenticated with the bearer token."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://testserver", headers=AUTH_HEADERS
    ) as async_client:
        yield async_client
