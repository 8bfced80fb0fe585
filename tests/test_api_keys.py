"""Tests for provider API key validation."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest
from tenacity import wait_none

from automate_installer import api_keys
from automate_installer.api_keys import validate_api_key


class _RefusingClient:
    """httpx.AsyncClient stand-in whose requests never connect."""

    calls = 0

    def __init__(self, *args, **kwargs):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def post(self, url, **kwargs):
        type(self).calls += 1
        raise httpx.ConnectError("connection refused")

    get = post


class TestValidateApiKey:

    @pytest.mark.parametrize("status,expected", [(200, True), (401, False), (403, False), (500, False)])
    async def test_status_decides(self, status, expected):
        with patch.object(api_keys, "_request_status", AsyncMock(return_value=status)):
            assert await validate_api_key("anthropic", "sk-ant-x") is expected

    async def test_unknown_provider(self):
        with pytest.raises(ValueError):
            await validate_api_key("cohere", "key")

    async def test_connection_errors_retry_then_fail(self):
        _RefusingClient.calls = 0
        fast = api_keys._request_status.retry_with(wait=wait_none())
        with patch.object(api_keys, "_request_status", fast), \
             patch.object(api_keys.httpx, "AsyncClient", _RefusingClient):
            assert await validate_api_key("openai", "sk-x") is False
        assert _RefusingClient.calls == 2

    async def test_anthropic_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["key"] = request.headers["x-api-key"]
            seen["version"] = request.headers["anthropic-version"]
            return httpx.Response(200, json={})

        transport = httpx.MockTransport(handler)
        real_client = httpx.AsyncClient

        with patch.object(api_keys.httpx, "AsyncClient",
                          lambda **kw: real_client(transport=transport, **kw)):
            assert await validate_api_key("anthropic", "sk-ant-abc") is True

        assert seen == {
            "method": "GET",
            "url": api_keys.ANTHROPIC_MODELS_URL,
            "key": "sk-ant-abc",
            "version": api_keys.ANTHROPIC_VERSION,
        }

    async def test_openai_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["auth"] = request.headers["authorization"]
            return httpx.Response(401)

        transport = httpx.MockTransport(handler)
        real_client = httpx.AsyncClient

        with patch.object(api_keys.httpx, "AsyncClient",
                          lambda **kw: real_client(transport=transport, **kw)):
            assert await validate_api_key("openai", "sk-bad") is False

        assert seen == {"method": "GET", "auth": "Bearer sk-bad"}
