import logging
from typing import Optional

import httpx

from src.core.config import settings
from src.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _mask_token(token: str, visible_chars: int = 4) -> str:
    """对 token 进行脱敏处理，仅显示前几个字符"""
    if not token or len(token) <= visible_chars:
        return "***"
    return f"{token[:visible_chars]}***"


class MissingCredentialsError(ConfigurationError):
    """既没有 API Key 也没有 Access Token"""


class BacklogAuth(httpx.Auth):
    """
    Backlog API 认证

    - OAuth access token: Authorization: Bearer <token>
    - API Key: 追加查询参数 apiKey=<key>

    两者都配置时同时注入（与 Backlog 官方客户端一致）。
    """

    def __init__(self, api_key: Optional[str] = None, auth_token: Optional[str] = None):
        self.api_key = api_key
        self.auth_token = auth_token
        if not api_key and not auth_token:
            raise MissingCredentialsError(
                "No Backlog credentials found (BACKLOG_API_KEY or BACKLOG_AUTH_TOKEN)"
            )
        logger.debug(
            "BacklogAuth configured: api_key=%s, auth_token=%s",
            _mask_token(api_key) if api_key else None,
            _mask_token(auth_token) if auth_token else None,
        )

    @classmethod
    def from_settings(cls) -> "BacklogAuth":
        return cls(api_key=settings.BACKLOG_API_KEY, auth_token=settings.BACKLOG_AUTH_TOKEN)

    def auth_flow(self, request: httpx.Request):
        if self.auth_token:
            request.headers["Authorization"] = f"Bearer {self.auth_token}"
        if self.api_key:
            request.url = request.url.copy_add_param("apiKey", self.api_key)
        yield request
