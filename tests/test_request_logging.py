"""Tests for logging setup and the request logging middleware."""

import logging

import pytest

from conftest import PROXY_KEY
from llmgate.logging import setup_logging
from llmgate.middleware import mask_path


def test_mask_path_hides_path_token():
    assert mask_path(f"/jb/{PROXY_KEY}/v1/messages") == "/jb/***/v1/messages"
    assert mask_path("/v1/messages") == "/v1/messages"


def test_setup_logging_configures_named_logger():
    logger = setup_logging("debug")

    assert logger.name == "llmgate"
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    setup_logging("INFO")


def test_setup_logging_unknown_level_defaults_to_info():
    assert setup_logging("chatty").level == logging.INFO


@pytest.mark.asyncio
async def test_requests_are_logged_with_masked_token(client, caplog):
    caplog.set_level(logging.INFO, logger="llmgate")

    response = await client.get(f"/jb/{PROXY_KEY}/models")

    assert response.status_code == 200
    access_lines = [r.getMessage() for r in caplog.records if "-> 200" in r.getMessage()]
    assert access_lines
    assert access_lines[-1].startswith("GET /jb/***/models -> 200")
    assert all(PROXY_KEY not in r.getMessage() for r in caplog.records)
