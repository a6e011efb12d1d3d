"""
ProjectAPI - 项目维度的原子接口

对应 Backlog API:
- 项目列表: GET /api/v2/projects
- 项目详情: GET /api/v2/projects/:projectIdOrKey
- 状态列表: GET /api/v2/projects/:projectIdOrKey/statuses
- Issue 类型列表: GET /api/v2/projects/:projectIdOrKey/issueTypes
- 分类列表: GET /api/v2/projects/:projectIdOrKey/categories
- 里程碑列表: GET /api/v2/projects/:projectIdOrKey/versions
- 自定义字段列表: GET /api/v2/projects/:projectIdOrKey/customFields
- 项目图标: GET /api/v2/projects/:projectIdOrKey/image
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from src.core.backlog_client import BacklogClient, get_backlog_client
from src.core.form import form_field, form_params
from src.core.identifiers import ProjectIdOrKey
from src.core.request import ApiRequest, DownloadedFile, DownloadRequest
from src.providers.backlog.api.common import parse_list, parse_model
from src.schemas.backlog import (
    Category,
    CustomFieldDefinition,
    IssueType,
    Milestone,
    Project,
    Status,
)

logger = logging.getLogger(__name__)


@form_params
@dataclass(frozen=True, kw_only=True)
class GetProjectListParams:
    archived: Optional[bool] = None
    # 管理员可列出全部项目
    all: Optional[bool] = None

    def to_request(self) -> ApiRequest:
        return ApiRequest.get("/api/v2/projects", self)


@form_params
@dataclass(frozen=True, kw_only=True)
class ProjectScopedParams:
    """只有路径参数的项目级请求"""

    project_id_or_key: ProjectIdOrKey = form_field(skip=True)

    def path(self, suffix: str = "") -> str:
        return f"/api/v2/projects/{self.project_id_or_key}{suffix}"


@form_params
@dataclass(frozen=True, kw_only=True)
class GetMilestoneListParams:
    project_id_or_key: ProjectIdOrKey = form_field(skip=True)
    archived: Optional[bool] = None

    def to_request(self) -> ApiRequest:
        return ApiRequest.get(f"/api/v2/projects/{self.project_id_or_key}/versions", self)


class ProjectAPI:
    """Backlog 项目 API 封装"""

    def __init__(self, client: Optional[BacklogClient] = None):
        self.client = client or get_backlog_client()

    async def list_projects(self, params: Optional[GetProjectListParams] = None) -> List[Project]:
        request = (params or GetProjectListParams()).to_request()
        projects = parse_list(Project, await self.client.execute(request))
        logger.info("Retrieved %d projects", len(projects))
        return projects

    async def get_project(self, project_id_or_key: ProjectIdOrKey) -> Project:
        """
        获取项目详情

        API: GET /api/v2/projects/:projectIdOrKey
        """
        logger.debug("Getting project: %s", project_id_or_key)
        path = ProjectScopedParams(project_id_or_key=project_id_or_key).path()
        return parse_model(Project, await self.client.execute(ApiRequest.get(path)))

    async def _list(self, project_id_or_key: ProjectIdOrKey, suffix: str, model):
        path = ProjectScopedParams(project_id_or_key=project_id_or_key).path(suffix)
        items = parse_list(model, await self.client.execute(ApiRequest.get(path)))
        logger.debug("Retrieved %d items from %s", len(items), path)
        return items

    async def list_statuses(self, project_id_or_key: ProjectIdOrKey) -> List[Status]:
        return await self._list(project_id_or_key, "/statuses", Status)

    async def list_issue_types(self, project_id_or_key: ProjectIdOrKey) -> List[IssueType]:
        return await self._list(project_id_or_key, "/issueTypes", IssueType)

    async def list_categories(self, project_id_or_key: ProjectIdOrKey) -> List[Category]:
        return await self._list(project_id_or_key, "/categories", Category)

    async def list_custom_fields(
        self, project_id_or_key: ProjectIdOrKey
    ) -> List[CustomFieldDefinition]:
        return await self._list(project_id_or_key, "/customFields", CustomFieldDefinition)

    async def list_milestones(self, params: GetMilestoneListParams) -> List[Milestone]:
        """API: GET /api/v2/projects/:projectIdOrKey/versions"""
        return parse_list(Milestone, await self.client.execute(params.to_request()))

    async def download_icon(self, project_id_or_key: ProjectIdOrKey) -> DownloadedFile:
        """API: GET /api/v2/projects/:projectIdOrKey/image"""
        path = ProjectScopedParams(project_id_or_key=project_id_or_key).path("/image")
        return await self.client.download(DownloadRequest(path))
