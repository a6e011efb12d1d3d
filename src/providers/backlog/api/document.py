"""
DocumentAPI

对应 Backlog API:
- 文档列表: GET /api/v2/documents?projectId[]=...
- 文档详情: GET /api/v2/documents/:documentId
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from src.core.backlog_client import BacklogClient, get_backlog_client
from src.core.form import form_field, form_params
from src.core.identifiers import DocumentId, ProjectId
from src.core.request import ApiRequest
from src.providers.backlog.api.common import Order, parse_list, parse_model
from src.schemas.backlog import Document

logger = logging.getLogger(__name__)


@form_params
@dataclass(frozen=True, kw_only=True)
class ListDocumentsParams:
    project_ids: Optional[List[ProjectId]] = form_field(
        name="projectId", array=True, default=None
    )
    keyword: Optional[str] = None
    sort: Optional[str] = None
    order: Optional[Order] = None
    offset: int = 0
    count: Optional[int] = None

    def to_request(self) -> ApiRequest:
        return ApiRequest.get("/api/v2/documents", self)


class DocumentAPI:
    def __init__(self, client: Optional[BacklogClient] = None):
        self.client = client or get_backlog_client()

    async def list_documents(self, params: ListDocumentsParams) -> List[Document]:
        return parse_list(Document, await self.client.execute(params.to_request()))

    async def get_document(self, document_id: DocumentId) -> Document:
        logger.debug("Getting document: %s", document_id)
        request = ApiRequest.get(f"/api/v2/documents/{document_id}")
        return parse_model(Document, await self.client.execute(request))
