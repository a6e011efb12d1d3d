"""
WikiAPI

对应 Backlog API:
- Wiki 列表: GET /api/v2/wikis?projectIdOrKey=...
- Wiki 详情: GET /api/v2/wikis/:wikiId
- 添加 Wiki: POST /api/v2/wikis
- Wiki 附件列表: GET /api/v2/wikis/:wikiId/attachments
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from src.core.backlog_client import BacklogClient, get_backlog_client
from src.core.form import form_params
from src.core.identifiers import ProjectId, ProjectIdOrKey, WikiId
from src.core.request import ApiRequest
from src.providers.backlog.api.common import parse_list, parse_model
from src.schemas.backlog import Attachment, Wiki

logger = logging.getLogger(__name__)


@form_params
@dataclass(frozen=True, kw_only=True)
class GetWikiListParams:
    project_id_or_key: ProjectIdOrKey
    keyword: Optional[str] = None

    def to_request(self) -> ApiRequest:
        return ApiRequest.get("/api/v2/wikis", self)


@form_params
@dataclass(frozen=True, kw_only=True)
class AddWikiParams:
    project_id: ProjectId
    name: str
    content: str
    mail_notify: Optional[bool] = None

    def to_request(self) -> ApiRequest:
        return ApiRequest.post("/api/v2/wikis", self)


class WikiAPI:
    def __init__(self, client: Optional[BacklogClient] = None):
        self.client = client or get_backlog_client()

    async def list_wikis(self, params: GetWikiListParams) -> List[Wiki]:
        wikis = parse_list(Wiki, await self.client.execute(params.to_request()))
        logger.info("Retrieved %d wiki pages for %s", len(wikis), params.project_id_or_key)
        return wikis

    async def get_wiki(self, wiki_id: WikiId) -> Wiki:
        request = ApiRequest.get(f"/api/v2/wikis/{wiki_id}")
        return parse_model(Wiki, await self.client.execute(request))

    async def add_wiki(self, params: AddWikiParams) -> Wiki:
        logger.info("Adding wiki page %s to project %s", params.name, params.project_id)
        return parse_model(Wiki, await self.client.execute(params.to_request()))

    async def list_attachments(self, wiki_id: WikiId) -> List[Attachment]:
        request = ApiRequest.get(f"/api/v2/wikis/{wiki_id}/attachments")
        return parse_list(Attachment, await self.client.execute(request))
