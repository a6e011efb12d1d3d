"""
项目访问控制

配置 BACKLOG_PROJECTS（逗号分隔的项目 Key）后，MCP 工具只允许访问列表内的项目。
数值 ID（以及可同时解析为 ID 与 Key 的输入）通过 GET /api/v2/projects/:id
解析为项目 Key，结果缓存 300 秒，最多 1000 条。
"""

import logging
from typing import List, Optional

from src.core.cache import SimpleCache
from src.core.config import settings
from src.core.errors import BacklogError, ProjectAccessDenied
from src.core.identifiers import IssueKey, ProjectId, ProjectIdOrKey, ProjectKey
from src.providers.backlog.api.project import ProjectAPI

logger = logging.getLogger(__name__)


class AccessControl:
    PROJECT_CACHE_TTL = 300
    PROJECT_CACHE_MAX_SIZE = 1000

    def __init__(
        self,
        allowed_projects: Optional[List[str]] = None,
        project_api: Optional[ProjectAPI] = None,
    ):
        raw_keys = settings.allowed_projects if allowed_projects is None else allowed_projects
        # 非法 Key 在启动时即报错（InvalidProjectKey）
        keys = [ProjectKey(k) for k in raw_keys]
        self.allowed_projects: Optional[List[ProjectKey]] = keys or None
        self._project_api = project_api
        self._project_keys = SimpleCache(
            ttl=self.PROJECT_CACHE_TTL, max_size=self.PROJECT_CACHE_MAX_SIZE
        )
        if self.allowed_projects:
            logger.info(
                "Project access restricted to: %s",
                ", ".join(str(k) for k in self.allowed_projects),
            )

    @property
    def is_enabled(self) -> bool:
        return self.allowed_projects is not None

    @property
    def project_api(self) -> ProjectAPI:
        if self._project_api is None:
            self._project_api = ProjectAPI()
        return self._project_api

    def _denied(self, project: object) -> ProjectAccessDenied:
        return ProjectAccessDenied(str(project), [str(k) for k in self.allowed_projects or []])

    async def resolve_project_key(self, project_id: ProjectId) -> ProjectKey:
        """数值项目 ID -> 项目 Key（带 TTL 缓存）"""
        cached = self._project_keys.get(project_id)
        if cached is not None:
            return cached

        project = await self.project_api.get_project(ProjectIdOrKey.of(project_id))
        key = ProjectKey(project.project_key)
        self._project_keys.set(project_id, key)
        return key

    def check_project_key(self, project_key: ProjectKey) -> None:
        if not self.is_enabled:
            return
        if project_key not in self.allowed_projects:
            raise self._denied(project_key)

    async def check_project_id(self, project_id: ProjectId) -> None:
        if not self.is_enabled:
            return
        if project_id.value == 0:
            # 不存在 ID 为 0 的项目
            raise self._denied(project_id)
        try:
            key = await self.resolve_project_key(project_id)
        except BacklogError as e:
            logger.warning("Failed to resolve project ID %s: %s", project_id, e)
            raise self._denied(project_id) from e
        if key not in self.allowed_projects:
            raise self._denied(project_id)

    async def check_project(self, project: ProjectIdOrKey) -> None:
        """
        校验项目引用是否在允许列表内

        数值形态（ID / 歧义）按 ID 解析，与请求路径的渲染方式一致。

        Raises:
            ProjectAccessDenied: 不在允许列表内或 ID 无法解析
        """
        if not self.is_enabled:
            return
        if project.id is not None:
            await self.check_project_id(project.id)
        else:
            self.check_project_key(project.key)

    def check_issue_key(self, issue_key: IssueKey) -> None:
        """Issue Key 自带项目 Key，无需请求 API"""
        self.check_project_key(issue_key.project_key)
