"""
GitAPI

对应 Backlog API:
- 仓库列表: GET /api/v2/projects/:projectIdOrKey/git/repositories
- 仓库详情: GET /api/v2/projects/:projectIdOrKey/git/repositories/:repoIdOrName
- PR 列表: GET /api/v2/projects/:projectIdOrKey/git/repositories/:repoIdOrName/pullRequests
- PR 详情: GET .../pullRequests/:number
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from src.core.backlog_client import BacklogClient, get_backlog_client
from src.core.form import form_field, form_params
from src.core.identifiers import (
    IssueId,
    ProjectIdOrKey,
    PullRequestNumber,
    RepositoryIdOrName,
    UserId,
)
from src.core.request import ApiRequest
from src.providers.backlog.api.common import parse_list, parse_model
from src.schemas.backlog import PullRequest, Repository

logger = logging.getLogger(__name__)


def _repository_path(
    project_id_or_key: ProjectIdOrKey, repo_id_or_name: RepositoryIdOrName, suffix: str = ""
) -> str:
    return f"/api/v2/projects/{project_id_or_key}/git/repositories/{repo_id_or_name}{suffix}"


@form_params
@dataclass(frozen=True, kw_only=True)
class GetPullRequestListParams:
    project_id_or_key: ProjectIdOrKey = form_field(skip=True)
    repo_id_or_name: RepositoryIdOrName = form_field(skip=True)
    # 1: Open, 2: Closed, 3: Merged
    status_ids: Optional[List[int]] = form_field(name="statusId", array=True, default=None)
    assignee_ids: Optional[List[UserId]] = form_field(name="assigneeId", array=True, default=None)
    issue_ids: Optional[List[IssueId]] = form_field(name="issueId", array=True, default=None)
    created_user_ids: Optional[List[UserId]] = form_field(
        name="createdUserId", array=True, default=None
    )
    offset: Optional[int] = None
    count: Optional[int] = None

    def to_request(self) -> ApiRequest:
        path = _repository_path(self.project_id_or_key, self.repo_id_or_name, "/pullRequests")
        return ApiRequest.get(path, self)


class GitAPI:
    def __init__(self, client: Optional[BacklogClient] = None):
        self.client = client or get_backlog_client()

    async def list_repositories(self, project_id_or_key: ProjectIdOrKey) -> List[Repository]:
        request = ApiRequest.get(f"/api/v2/projects/{project_id_or_key}/git/repositories")
        return parse_list(Repository, await self.client.execute(request))

    async def get_repository(
        self, project_id_or_key: ProjectIdOrKey, repo_id_or_name: RepositoryIdOrName
    ) -> Repository:
        request = ApiRequest.get(_repository_path(project_id_or_key, repo_id_or_name))
        return parse_model(Repository, await self.client.execute(request))

    async def list_pull_requests(self, params: GetPullRequestListParams) -> List[PullRequest]:
        pull_requests = parse_list(PullRequest, await self.client.execute(params.to_request()))
        logger.info(
            "Retrieved %d pull requests from %s/%s",
            len(pull_requests),
            params.project_id_or_key,
            params.repo_id_or_name,
        )
        return pull_requests

    async def get_pull_request(
        self,
        project_id_or_key: ProjectIdOrKey,
        repo_id_or_name: RepositoryIdOrName,
        number: PullRequestNumber,
    ) -> PullRequest:
        path = _repository_path(project_id_or_key, repo_id_or_name, f"/pullRequests/{number}")
        return parse_model(PullRequest, await self.client.execute(ApiRequest.get(path)))
