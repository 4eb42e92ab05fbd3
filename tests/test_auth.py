"""Tests for gateway token authentication on both mount points."""

import httpx
import pytest

from conftest import PROXY_KEY


@pytest.mark.asyncio
async def test_missing_bearer_token_rejected(app, upstream):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
        response = await client.get("/models")

    assert response.status_code == 401
    assert response.json()["detail"]["error"]["type"] == "authentication_error"
    assert response.json()["detail"]["error"]["code"] == "missing_api_key"


@pytest.mark.asyncio
async def test_wrong_bearer_token_rejected_before_backend_call(app, upstream):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
        response = await client.post(
            "/v1/messages",
            headers={"Authorization": "Bearer wrong"},
            json={"model": "m", "messages": [{"role": "user", "content": "hi"}]},
        )

    assert response.status_code == 401
    assert response.json()["detail"]["error"]["code"] == "invalid_api_key"
    assert upstream.received == []


@pytest.mark.asyncio
async def test_path_token_accepted(app, upstream):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
        response = await client.get(f"/jb/{PROXY_KEY}/models")

    assert response.status_code == 200
    assert [entry["id"] for entry in response.json()["data"]] == ["m", "other"]


@pytest.mark.asyncio
async def test_wrong_path_token_rejected(app, upstream):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
        response = await client.post(
            "/jb/wrong/chat/completions",
            headers={"Authorization": f"Bearer {PROXY_KEY}"},
            json={"model": "m", "messages": []},
        )

    assert response.status_code == 401
    assert response.json()["detail"]["error"]["code"] == "invalid_path_token"
    assert upstream.received == []


@pytest.mark.asyncio
async def test_health_is_unauthenticated(app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
