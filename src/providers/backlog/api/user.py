"""
UserAPI

对应 Backlog API:
- 用户列表: GET /api/v2/users
- 当前用户: GET /api/v2/users/myself
- 通知列表: GET /api/v2/notifications
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from src.core.backlog_client import BacklogClient, get_backlog_client
from src.core.form import form_params
from src.core.identifiers import NotificationId, UserId
from src.core.request import ApiRequest
from src.providers.backlog.api.common import Order, parse_list, parse_model
from src.schemas.backlog import User

logger = logging.getLogger(__name__)


@form_params
@dataclass(frozen=True, kw_only=True)
class GetNotificationsParams:
    min_id: Optional[NotificationId] = None
    max_id: Optional[NotificationId] = None
    count: Optional[int] = None
    order: Optional[Order] = None
    sender_id: Optional[UserId] = None

    def to_request(self) -> ApiRequest:
        return ApiRequest.get("/api/v2/notifications", self)


class UserAPI:
    def __init__(self, client: Optional[BacklogClient] = None):
        self.client = client or get_backlog_client()

    async def list_users(self) -> List[User]:
        users = parse_list(User, await self.client.execute(ApiRequest.get("/api/v2/users")))
        logger.info("Retrieved %d users", len(users))
        return users

    async def get_myself(self) -> User:
        return parse_model(User, await self.client.execute(ApiRequest.get("/api/v2/users/myself")))

    async def list_notifications(
        self, params: Optional[GetNotificationsParams] = None
    ) -> List[Dict[str, Any]]:
        data = await self.client.execute((params or GetNotificationsParams()).to_request())
        return data if isinstance(data, list) else []
