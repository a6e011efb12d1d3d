"""
API 测试共享 Fixtures

API 类只负责 参数对象 -> 请求描述符 -> client.execute()，
这里用 AsyncMock 代替 BacklogClient，直接断言传入的描述符。
"""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest

from src.core.backlog_client import BacklogClient


@pytest.fixture
def mock_client() -> AsyncMock:
    """模拟 BacklogClient"""
    return AsyncMock(spec=BacklogClient)


def sent_request(mock_client: AsyncMock, method: str = "execute"):
    """取出最近一次传给 client 的请求描述符"""
    return getattr(mock_client, method).await_args.args[0]


def issue_payload(**overrides: Any) -> dict[str, Any]:
    data = {
        "id": 1,
        "projectId": 10,
        "issueKey": "BLG-1",
        "keyId": 1,
        "summary": "First issue",
        "status": {"id": 1, "projectId": 10, "name": "Open"},
        "priority": {"id": 3, "name": "Normal"},
    }
    data.update(overrides)
    return data


def project_payload(**overrides: Any) -> dict[str, Any]:
    data = {"id": 10, "projectKey": "BLG", "name": "Backlog", "archived": False}
    data.update(overrides)
    return data
