"""
IssueAPI 测试模块

测试覆盖:
1. get_issue / list_issues - 路径与查询参数
2. add_issue / update_issue - 表单参数（含自定义字段）、HTTP 方法
3. 评论 / 附件接口
4. 响应结构异常
"""

import datetime
from unittest.mock import patch

import pytest

from src.core.errors import UnexpectedResponseError
from src.core.identifiers import (
    AttachmentId,
    CustomFieldId,
    CustomFieldItemId,
    IssueIdOrKey,
    IssueTypeId,
    PriorityId,
    ProjectId,
    StatusId,
    UserId,
)
from src.core.request import DownloadedFile, DownloadRequest, HttpMethod
from src.providers.backlog.api.common import Order
from src.providers.backlog.api.issue import (
    AddCommentParams,
    AddIssueParams,
    GetCommentListParams,
    GetIssueListParams,
    IssueAPI,
    UpdateIssueParams,
)
from src.providers.backlog.custom_fields import CustomFieldInput
from tests.unit.providers.backlog.api.conftest import issue_payload, sent_request


@pytest.fixture
def api(mock_client):
    return IssueAPI(client=mock_client)


class TestGetIssue:
    @pytest.mark.asyncio
    async def test_get_issue_by_key(self, api, mock_client):
        mock_client.execute.return_value = issue_payload()

        issue = await api.get_issue(IssueIdOrKey.parse("BLG-1"))

        assert issue.issue_key == "BLG-1"
        assert issue.status.name == "Open"
        request = sent_request(mock_client)
        assert request.method is HttpMethod.GET
        assert request.path == "/api/v2/issues/BLG-1"
        assert request.query == ()

    @pytest.mark.asyncio
    async def test_get_issue_by_id(self, api, mock_client):
        mock_client.execute.return_value = issue_payload()
        await api.get_issue(IssueIdOrKey.parse("123"))
        assert sent_request(mock_client).path == "/api/v2/issues/123"

    @pytest.mark.asyncio
    async def test_unexpected_shape(self, api, mock_client):
        mock_client.execute.return_value = [issue_payload()]
        with pytest.raises(UnexpectedResponseError):
            await api.get_issue(IssueIdOrKey.parse("BLG-1"))

    def test_default_client(self, mock_client):
        """未传入 client 时使用全局单例"""
        with patch("src.providers.backlog.api.issue.get_backlog_client") as factory:
            factory.return_value = mock_client
            assert IssueAPI().client is mock_client


class TestListIssues:
    @pytest.mark.asyncio
    async def test_query_pairs(self, api, mock_client):
        mock_client.execute.return_value = [issue_payload(), issue_payload(id=2, issueKey="BLG-2")]
        params = GetIssueListParams(
            project_ids=[ProjectId(10), ProjectId(11)],
            status_ids=[StatusId(1)],
            keyword="crash",
            due_date_until=datetime.date(2024, 6, 30),
            order=Order.DESC,
            count=50,
        )

        issues = await api.list_issues(params)

        assert [i.issue_key for i in issues] == ["BLG-1", "BLG-2"]
        request = sent_request(mock_client)
        assert request.path == "/api/v2/issues"
        assert request.query == (
            ("projectId[]", "10"),
            ("projectId[]", "11"),
            ("statusId[]", "1"),
            ("keyword", "crash"),
            ("dueDateUntil", "2024-06-30"),
            ("order", "desc"),
            ("count", "50"),
        )

    @pytest.mark.asyncio
    async def test_empty_params(self, api, mock_client):
        mock_client.execute.return_value = []
        assert await api.list_issues(GetIssueListParams()) == []
        assert sent_request(mock_client).query == ()


class TestAddIssue:
    @pytest.mark.asyncio
    async def test_form_body(self, api, mock_client):
        mock_client.execute.return_value = issue_payload()
        params = AddIssueParams(
            project_id=ProjectId(10),
            summary="Crash on save",
            issue_type_id=IssueTypeId(2),
            priority_id=PriorityId(3),
            due_date=datetime.date(2024, 7, 1),
            notified_user_ids=[UserId(5), UserId(6)],
            custom_fields={
                CustomFieldId(100): CustomFieldInput.text("ACME"),
                CustomFieldId(101): CustomFieldInput.multiple_list(
                    [CustomFieldItemId(1), CustomFieldItemId(2)], other_value="misc"
                ),
            },
        )

        await api.add_issue(params)

        request = sent_request(mock_client)
        assert request.method is HttpMethod.POST
        assert request.path == "/api/v2/issues"
        assert request.query == ()
        assert request.form == (
            ("projectId", "10"),
            ("summary", "Crash on save"),
            ("dueDate", "2024-07-01"),
            ("issueTypeId", "2"),
            ("priorityId", "3"),
            ("notifiedUserId[]", "5"),
            ("notifiedUserId[]", "6"),
            ("customField_100", "ACME"),
            ("customField_101", "1"),
            ("customField_101", "2"),
            ("customField_101_otherValue", "misc"),
        )


class TestUpdateIssue:
    @pytest.mark.asyncio
    async def test_patch_only_given_fields(self, api, mock_client):
        mock_client.execute.return_value = issue_payload()
        params = UpdateIssueParams(
            issue_id_or_key=IssueIdOrKey.parse("BLG-1"),
            status_id=StatusId(4),
            comment="Fixed",
        )

        await api.update_issue(params)

        request = sent_request(mock_client)
        assert request.method is HttpMethod.PATCH
        assert request.path == "/api/v2/issues/BLG-1"
        # 路径参数 issue_id_or_key 不出现在表单中
        assert request.form == (("statusId", "4"), ("comment", "Fixed"))


class TestComments:
    @pytest.mark.asyncio
    async def test_list_comments(self, api, mock_client):
        mock_client.execute.return_value = [{"id": 1, "content": "hi"}]
        params = GetCommentListParams(
            issue_id_or_key=IssueIdOrKey.parse("BLG-1"), count=10, order=Order.ASC
        )

        comments = await api.list_comments(params)

        assert comments[0].content == "hi"
        request = sent_request(mock_client)
        assert request.path == "/api/v2/issues/BLG-1/comments"
        assert request.query == (("count", "10"), ("order", "asc"))

    @pytest.mark.asyncio
    async def test_add_comment(self, api, mock_client):
        mock_client.execute.return_value = {"id": 2, "content": "Hello"}
        params = AddCommentParams(
            issue_id_or_key=IssueIdOrKey.parse("BLG-1"),
            content="Hello",
            notified_user_ids=[UserId(1), UserId(2), UserId(3)],
        )

        comment = await api.add_comment(params)

        assert comment.id == 2
        request = sent_request(mock_client)
        assert request.path == "/api/v2/issues/BLG-1/comments"
        assert request.form == (
            ("content", "Hello"),
            ("notifiedUserId[]", "1"),
            ("notifiedUserId[]", "2"),
            ("notifiedUserId[]", "3"),
        )


class TestAttachments:
    @pytest.mark.asyncio
    async def test_list_attachments(self, api, mock_client):
        mock_client.execute.return_value = [{"id": 3, "name": "log.txt", "size": 12}]
        attachments = await api.list_attachments(IssueIdOrKey.parse("BLG-1"))
        assert attachments[0].name == "log.txt"
        assert sent_request(mock_client).path == "/api/v2/issues/BLG-1/attachments"

    @pytest.mark.asyncio
    async def test_download_attachment(self, api, mock_client):
        mock_client.download.return_value = DownloadedFile("log.txt", "text/plain", b"x")

        downloaded = await api.download_attachment(IssueIdOrKey.parse("BLG-1"), AttachmentId(3))

        assert downloaded.filename == "log.txt"
        request = sent_request(mock_client, "download")
        assert isinstance(request, DownloadRequest)
        assert request.path == "/api/v2/issues/BLG-1/attachments/3"
        assert request.query == ()
