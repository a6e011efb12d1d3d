import logging

import pytest
from pydantic import ValidationError

from src.core.config import Settings


def test_settings_load_from_env(monkeypatch):
    """Test that settings load correctly from environment variables."""
    monkeypatch.setenv("BACKLOG_SPACE_KEY", "myspace")
    monkeypatch.setenv("BACKLOG_API_KEY", "key-123")
    monkeypatch.setenv("BACKLOG_PROJECTS", "BLG, DEV ,,OPS")

    # We pass _env_file=None to ignore the .env file and rely on monkeypatch
    settings = Settings(_env_file=None)

    assert settings.BACKLOG_SPACE_KEY == "myspace"
    assert settings.BACKLOG_API_KEY == "key-123"
    assert settings.allowed_projects == ["BLG", "DEV", "OPS"]


def test_settings_defaults(monkeypatch):
    """Test default values for optional settings."""
    for name in ("BACKLOG_BASE_URL", "BACKLOG_SPACE_KEY", "BACKLOG_PROJECTS", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)
    assert settings.BACKLOG_PREFIX == "backlog_"
    assert settings.BACKLOG_DOMAIN == "backlog.com"
    assert settings.HTTP_TIMEOUT == 30.0
    assert settings.HTTP_PORT == 8002
    assert settings.base_url is None
    assert settings.allowed_projects == []


def test_base_url_from_space_key(monkeypatch):
    monkeypatch.delenv("BACKLOG_BASE_URL", raising=False)
    settings = Settings(_env_file=None, BACKLOG_SPACE_KEY="acme", BACKLOG_DOMAIN="backlog.jp")
    assert settings.base_url == "https://acme.backlog.jp"


def test_explicit_base_url_wins():
    settings = Settings(
        _env_file=None,
        BACKLOG_BASE_URL="https://custom.example.com/",
        BACKLOG_SPACE_KEY="acme",
    )
    assert settings.base_url == "https://custom.example.com"


def test_invalid_space_key_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, BACKLOG_SPACE_KEY="a!")


@pytest.mark.parametrize(
    "level, expected",
    [("DEBUG", logging.DEBUG), ("warning", logging.WARNING), ("nonsense", logging.INFO)],
)
def test_get_log_level(level, expected):
    assert Settings(_env_file=None, LOG_LEVEL=level).get_log_level() == expected
