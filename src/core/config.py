import logging
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.identifiers import SpaceKey


class Settings(BaseSettings):
    # Backlog space: either a full base URL or space key + domain
    BACKLOG_BASE_URL: Optional[str] = None
    BACKLOG_SPACE_KEY: Optional[str] = None
    BACKLOG_DOMAIN: str = "backlog.com"

    # Credentials: API key (query parameter) or OAuth access token (Bearer)
    BACKLOG_API_KEY: Optional[str] = None
    BACKLOG_AUTH_TOKEN: Optional[str] = None

    # MCP tool name prefix and optional project allow-list (comma separated keys)
    BACKLOG_PREFIX: str = "backlog_"
    BACKLOG_PROJECTS: Optional[str] = None

    LOG_LEVEL: str = "INFO"

    HTTP_TIMEOUT: float = 30.0
    HTTP_HOST: str = "0.0.0.0"
    HTTP_PORT: int = 8002

    # backlog-agent: whether to run the HTTP wrapper beside the MCP server
    HTTP_ENABLED: bool = True
    HTTP_STARTUP_TIMEOUT: float = 5.0

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("BACKLOG_SPACE_KEY")
    @classmethod
    def _validate_space_key(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        # InvalidSpaceKey 是 ValueError，pydantic 会包装为配置错误
        return SpaceKey(value).value

    @property
    def base_url(self) -> Optional[str]:
        """显式配置的 BACKLOG_BASE_URL 优先，否则由 space key + domain 拼接"""
        if self.BACKLOG_BASE_URL:
            return self.BACKLOG_BASE_URL.rstrip("/")
        if self.BACKLOG_SPACE_KEY:
            return f"https://{self.BACKLOG_SPACE_KEY}.{self.BACKLOG_DOMAIN}"
        return None

    @property
    def allowed_projects(self) -> List[str]:
        if not self.BACKLOG_PROJECTS:
            return []
        return [p.strip() for p in self.BACKLOG_PROJECTS.split(",") if p.strip()]

    def get_log_level(self) -> int:
        """LOG_LEVEL -> logging 常量，无法识别时回退到 INFO"""
        return getattr(logging, self.LOG_LEVEL.upper(), logging.INFO)


settings = Settings()
