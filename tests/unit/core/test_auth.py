import httpx
import pytest
import respx
from httpx import Response

from src.core.auth import BacklogAuth, MissingCredentialsError, _mask_token
from src.core.config import settings
from src.core.errors import ConfigurationError


def test_mask_token():
    """测试 token 脱敏"""
    assert _mask_token("abcdefgh") == "abcd***"
    assert _mask_token("abc") == "***"
    assert _mask_token("") == "***"


def test_no_credentials_raises():
    """测试未配置凭证时的行为"""
    with pytest.raises(MissingCredentialsError) as exc_info:
        BacklogAuth()
    assert isinstance(exc_info.value, ConfigurationError)


def test_from_settings(monkeypatch):
    monkeypatch.setattr(settings, "BACKLOG_API_KEY", "key-1")
    monkeypatch.setattr(settings, "BACKLOG_AUTH_TOKEN", None)
    auth = BacklogAuth.from_settings()
    assert auth.api_key == "key-1"
    assert auth.auth_token is None


@pytest.mark.asyncio
async def test_api_key_added_as_query_parameter(respx_mock):
    """测试 API Key 作为 apiKey 查询参数注入"""
    route = respx_mock.get("https://example.backlog.com/api/v2/space").mock(
        return_value=Response(200, json={})
    )

    async with httpx.AsyncClient(auth=BacklogAuth(api_key="secret-key")) as client:
        await client.get("https://example.backlog.com/api/v2/space", params={"a": "1"})

    request = route.calls.last.request
    assert request.url.params["apiKey"] == "secret-key"
    assert request.url.params["a"] == "1"
    assert "Authorization" not in request.headers


@pytest.mark.asyncio
async def test_auth_token_added_as_bearer_header(respx_mock):
    """测试 OAuth token 作为 Bearer 头注入"""
    route = respx_mock.get("https://example.backlog.com/api/v2/space").mock(
        return_value=Response(200, json={})
    )

    async with httpx.AsyncClient(auth=BacklogAuth(auth_token="tok")) as client:
        await client.get("https://example.backlog.com/api/v2/space")

    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer tok"
    assert "apiKey" not in request.url.params
