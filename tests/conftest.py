import logging
import sys

import pytest

from src.core.config import settings

# Configure logging for tests
logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)
logger.info("Test logging configured: level=DEBUG")


@pytest.fixture(autouse=True)
def log_test_start(request):
    """Log test start and end for each test."""
    logger.info("=" * 80)
    logger.info("Starting test: %s", request.node.name)
    yield
    logger.info("Completed test: %s", request.node.name)
    logger.info("=" * 80)


@pytest.fixture
def backlog_settings(monkeypatch):
    """固定的 Backlog 连接配置，避免读取本地 .env"""
    monkeypatch.setattr(settings, "BACKLOG_BASE_URL", "https://example.backlog.com")
    monkeypatch.setattr(settings, "BACKLOG_API_KEY", "test-api-key")
    monkeypatch.setattr(settings, "BACKLOG_AUTH_TOKEN", None)
    monkeypatch.setattr(settings, "BACKLOG_PROJECTS", None)
    return settings
