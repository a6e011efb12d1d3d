"""
IssueAPI - Issue 相关原子接口

对应 Backlog API:
- 获取 Issue: GET /api/v2/issues/:issueIdOrKey
- Issue 列表: GET /api/v2/issues
- 添加 Issue: POST /api/v2/issues
- 更新 Issue: PATCH /api/v2/issues/:issueIdOrKey
- 评论列表: GET /api/v2/issues/:issueIdOrKey/comments
- 添加评论: POST /api/v2/issues/:issueIdOrKey/comments
- 附件列表: GET /api/v2/issues/:issueIdOrKey/attachments
- 下载附件: GET /api/v2/issues/:issueIdOrKey/attachments/:attachmentId
"""

import datetime
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from src.core.backlog_client import BacklogClient, get_backlog_client
from src.core.form import EncodedPair, encode, form_field, form_params
from src.core.identifiers import (
    AttachmentId,
    CategoryId,
    CommentId,
    CustomFieldId,
    IssueId,
    IssueIdOrKey,
    IssueTypeId,
    MilestoneId,
    PriorityId,
    ProjectId,
    ResolutionId,
    StatusId,
    UserId,
)
from src.core.request import ApiRequest, DownloadedFile, DownloadRequest
from src.providers.backlog.api.common import Order, parse_list, parse_model
from src.providers.backlog.custom_fields import CustomFieldInput, encode_custom_fields
from src.schemas.backlog import Attachment, Comment, Issue

logger = logging.getLogger(__name__)


def _issue_path(issue_id_or_key: IssueIdOrKey, suffix: str = "") -> str:
    return f"/api/v2/issues/{issue_id_or_key}{suffix}"


@form_params
@dataclass(frozen=True, kw_only=True)
class GetIssueParams:
    issue_id_or_key: IssueIdOrKey = form_field(skip=True)

    def to_request(self) -> ApiRequest:
        return ApiRequest.get(_issue_path(self.issue_id_or_key), self)


@form_params
@dataclass(frozen=True, kw_only=True)
class GetIssueListParams:
    project_ids: Optional[List[ProjectId]] = form_field(name="projectId", array=True, default=None)
    issue_type_ids: Optional[List[IssueTypeId]] = form_field(
        name="issueTypeId", array=True, default=None
    )
    category_ids: Optional[List[CategoryId]] = form_field(name="categoryId", array=True, default=None)
    milestone_ids: Optional[List[MilestoneId]] = form_field(
        name="milestoneId", array=True, default=None
    )
    status_ids: Optional[List[StatusId]] = form_field(name="statusId", array=True, default=None)
    priority_ids: Optional[List[PriorityId]] = form_field(name="priorityId", array=True, default=None)
    assignee_ids: Optional[List[UserId]] = form_field(name="assigneeId", array=True, default=None)
    keyword: Optional[str] = None
    start_date_since: Optional[datetime.date] = None
    start_date_until: Optional[datetime.date] = None
    due_date_since: Optional[datetime.date] = None
    due_date_until: Optional[datetime.date] = None
    sort: Optional[str] = None
    order: Optional[Order] = None
    offset: Optional[int] = None
    count: Optional[int] = None

    def to_request(self) -> ApiRequest:
        return ApiRequest.get("/api/v2/issues", self)


@form_params
@dataclass(frozen=True, kw_only=True)
class AddIssueParams:
    project_id: ProjectId
    summary: str
    parent_issue_id: Optional[IssueId] = None
    description: Optional[str] = None
    start_date: Optional[datetime.date] = None
    due_date: Optional[datetime.date] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    issue_type_id: IssueTypeId
    category_ids: Optional[List[CategoryId]] = form_field(name="categoryId", array=True, default=None)
    version_ids: Optional[List[MilestoneId]] = form_field(name="versionId", array=True, default=None)
    milestone_ids: Optional[List[MilestoneId]] = form_field(
        name="milestoneId", array=True, default=None
    )
    priority_id: PriorityId
    assignee_id: Optional[UserId] = None
    notified_user_ids: Optional[List[UserId]] = form_field(
        name="notifiedUserId", array=True, default=None
    )
    attachment_ids: Optional[List[AttachmentId]] = form_field(
        name="attachmentId", array=True, default=None
    )
    custom_fields: Optional[Dict[CustomFieldId, CustomFieldInput]] = form_field(
        skip=True, default=None
    )

    def to_form(self) -> List[EncodedPair]:
        return encode(self) + encode_custom_fields(self.custom_fields)

    def to_request(self) -> ApiRequest:
        return ApiRequest.post("/api/v2/issues", self)


@form_params
@dataclass(frozen=True, kw_only=True)
class UpdateIssueParams:
    issue_id_or_key: IssueIdOrKey = form_field(skip=True)
    summary: Optional[str] = None
    parent_issue_id: Optional[IssueId] = None
    description: Optional[str] = None
    start_date: Optional[datetime.date] = None
    due_date: Optional[datetime.date] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    issue_type_id: Optional[IssueTypeId] = None
    category_ids: Optional[List[CategoryId]] = form_field(name="categoryId", array=True, default=None)
    version_ids: Optional[List[MilestoneId]] = form_field(name="versionId", array=True, default=None)
    milestone_ids: Optional[List[MilestoneId]] = form_field(
        name="milestoneId", array=True, default=None
    )
    priority_id: Optional[PriorityId] = None
    assignee_id: Optional[UserId] = None
    notified_user_ids: Optional[List[UserId]] = form_field(
        name="notifiedUserId", array=True, default=None
    )
    attachment_ids: Optional[List[AttachmentId]] = form_field(
        name="attachmentId", array=True, default=None
    )
    status_id: Optional[StatusId] = None
    resolution_id: Optional[ResolutionId] = None
    comment: Optional[str] = None
    custom_fields: Optional[Dict[CustomFieldId, CustomFieldInput]] = form_field(
        skip=True, default=None
    )

    def to_form(self) -> List[EncodedPair]:
        return encode(self) + encode_custom_fields(self.custom_fields)

    def to_request(self) -> ApiRequest:
        return ApiRequest.patch(_issue_path(self.issue_id_or_key), self)


@form_params
@dataclass(frozen=True, kw_only=True)
class GetCommentListParams:
    issue_id_or_key: IssueIdOrKey = form_field(skip=True)
    min_id: Optional[CommentId] = None
    max_id: Optional[CommentId] = None
    count: Optional[int] = None
    order: Optional[Order] = None

    def to_request(self) -> ApiRequest:
        return ApiRequest.get(_issue_path(self.issue_id_or_key, "/comments"), self)


@form_params
@dataclass(frozen=True, kw_only=True)
class AddCommentParams:
    issue_id_or_key: IssueIdOrKey = form_field(skip=True)
    content: str
    notified_user_ids: Optional[List[UserId]] = form_field(
        name="notifiedUserId", array=True, default=None
    )
    attachment_ids: Optional[List[AttachmentId]] = form_field(
        name="attachmentId", array=True, default=None
    )

    def to_request(self) -> ApiRequest:
        return ApiRequest.post(_issue_path(self.issue_id_or_key, "/comments"), self)


@form_params
@dataclass(frozen=True, kw_only=True)
class DownloadAttachmentParams:
    issue_id_or_key: IssueIdOrKey = form_field(skip=True)
    attachment_id: AttachmentId = form_field(skip=True)

    def to_request(self) -> DownloadRequest:
        return DownloadRequest.of(
            _issue_path(self.issue_id_or_key, f"/attachments/{self.attachment_id}"), self
        )


class IssueAPI:
    """
    Backlog Issue API 封装

    职责: 参数对象 -> 请求描述符 -> BacklogClient，返回解析后的模型
    """

    def __init__(self, client: Optional[BacklogClient] = None):
        self.client = client or get_backlog_client()

    async def get_issue(self, issue_id_or_key: IssueIdOrKey) -> Issue:
        """
        获取 Issue 详情

        API: GET /api/v2/issues/:issueIdOrKey
        """
        logger.debug("Getting issue: %s", issue_id_or_key)
        request = GetIssueParams(issue_id_or_key=issue_id_or_key).to_request()
        return parse_model(Issue, await self.client.execute(request))

    async def list_issues(self, params: GetIssueListParams) -> List[Issue]:
        """API: GET /api/v2/issues"""
        data = await self.client.execute(params.to_request())
        issues = parse_list(Issue, data)
        logger.info("Retrieved %d issues", len(issues))
        return issues

    async def add_issue(self, params: AddIssueParams) -> Issue:
        """
        添加 Issue

        API: POST /api/v2/issues

        Args:
            params: projectId / summary / issueTypeId / priorityId 必填，
                    custom_fields 编码为 customField_<id>
        """
        logger.info("Adding issue to project %s: %s", params.project_id, params.summary)
        return parse_model(Issue, await self.client.execute(params.to_request()))

    async def update_issue(self, params: UpdateIssueParams) -> Issue:
        """API: PATCH /api/v2/issues/:issueIdOrKey"""
        logger.info("Updating issue %s", params.issue_id_or_key)
        return parse_model(Issue, await self.client.execute(params.to_request()))

    async def list_comments(self, params: GetCommentListParams) -> List[Comment]:
        """API: GET /api/v2/issues/:issueIdOrKey/comments"""
        return parse_list(Comment, await self.client.execute(params.to_request()))

    async def add_comment(self, params: AddCommentParams) -> Comment:
        """API: POST /api/v2/issues/:issueIdOrKey/comments"""
        logger.info("Adding comment to issue %s", params.issue_id_or_key)
        return parse_model(Comment, await self.client.execute(params.to_request()))

    async def list_attachments(self, issue_id_or_key: IssueIdOrKey) -> List[Attachment]:
        """API: GET /api/v2/issues/:issueIdOrKey/attachments"""
        request = ApiRequest.get(_issue_path(issue_id_or_key, "/attachments"))
        return parse_list(Attachment, await self.client.execute(request))

    async def download_attachment(
        self, issue_id_or_key: IssueIdOrKey, attachment_id: AttachmentId
    ) -> DownloadedFile:
        """API: GET /api/v2/issues/:issueIdOrKey/attachments/:attachmentId"""
        params = DownloadAttachmentParams(
            issue_id_or_key=issue_id_or_key, attachment_id=attachment_id
        )
        return await self.client.download(params.to_request())
