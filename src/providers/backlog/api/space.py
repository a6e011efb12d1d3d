"""
SpaceAPI - Space 与速率限制

对应 Backlog API:
- Space 信息: GET /api/v2/space
- 上传附件: POST /api/v2/space/attachment (multipart, 字段名 file)
- 速率限制: GET /api/v2/rateLimit
"""

import logging
from pathlib import Path
from typing import Optional

from src.core.backlog_client import BacklogClient, get_backlog_client
from src.core.request import ApiRequest, UploadRequest
from src.providers.backlog.api.common import parse_model
from src.schemas.backlog import RateLimit, Space, SpaceAttachment

logger = logging.getLogger(__name__)


class SpaceAPI:
    def __init__(self, client: Optional[BacklogClient] = None):
        self.client = client or get_backlog_client()

    async def get_space(self) -> Space:
        return parse_model(Space, await self.client.execute(ApiRequest.get("/api/v2/space")))

    async def upload_attachment(self, file_path: Path) -> SpaceAttachment:
        """
        上传附件到 Space，返回的 ID 可用于 Issue / 评论的 attachmentId[]

        Raises:
            FileReadError: 本地文件无法读取
        """
        request = UploadRequest.of("/api/v2/space/attachment", file_path)
        attachment = parse_model(SpaceAttachment, await self.client.upload(request))
        logger.info("Uploaded attachment %s (id=%d)", attachment.name, attachment.id)
        return attachment

    async def get_rate_limit(self) -> RateLimit:
        data = await self.client.execute(ApiRequest.get("/api/v2/rateLimit"))
        # 响应形如 {"rateLimit": {"read": {...}, "update": {...}, ...}}
        if isinstance(data, dict) and "rateLimit" in data:
            data = data["rateLimit"]
        return parse_model(RateLimit, data)
