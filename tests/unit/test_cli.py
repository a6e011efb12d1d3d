"""CLI tests using typer's CliRunner."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from src.cli import app
from src.core.errors import BacklogApiError, ConfigurationError
from src.core.identifiers import CustomFieldId, IssueIdOrKey, ProjectId
from src.core.request import DownloadedFile
from src.schemas.backlog import Attachment, Issue, Project

runner = CliRunner()


def _issue(**overrides) -> Issue:
    data = {"id": 1, "project_id": 10, "issue_key": "BLG-1", "key_id": 1, "summary": "Crash"}
    data.update(overrides)
    return Issue(**data)


@pytest.fixture
def issue_api():
    with patch("src.cli.IssueAPI") as mock_cls:
        instance = AsyncMock()
        mock_cls.return_value = instance
        yield instance


@pytest.fixture
def project_api():
    with patch("src.cli.ProjectAPI") as mock_cls:
        instance = AsyncMock()
        instance.get_project.return_value = Project(id=10, project_key="BLG", name="Backlog")
        mock_cls.return_value = instance
        yield instance


class TestIssueShow:
    def test_prints_json(self, issue_api):
        issue_api.get_issue.return_value = _issue()

        result = runner.invoke(app, ["issue", "show", "BLG-1"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["issueKey"] == "BLG-1"
        issue_api.get_issue.assert_awaited_once_with(IssueIdOrKey.parse("BLG-1"))

    def test_invalid_key_exits_with_2(self, issue_api):
        result = runner.invoke(app, ["issue", "show", "BLG-09"])

        assert result.exit_code == 2
        assert "invalid issue_id_or_key: 'BLG-09'" in result.output
        issue_api.get_issue.assert_not_called()

    def test_api_error_exits_with_1(self, issue_api):
        issue_api.get_issue.side_effect = BacklogApiError(404, [{"message": "No issue"}])

        result = runner.invoke(app, ["issue", "show", "BLG-1"])

        assert result.exit_code == 1
        assert "No issue" in result.output

    def test_client_closed_after_command(self, issue_api):
        issue_api.get_issue.return_value = _issue()
        with patch("src.cli.close_backlog_client", new_callable=AsyncMock) as close:
            result = runner.invoke(app, ["issue", "show", "BLG-1"])

        assert result.exit_code == 0
        close.assert_awaited_once()

    def test_client_closed_after_api_error(self, issue_api):
        issue_api.get_issue.side_effect = BacklogApiError(500, [{"message": "boom"}])
        with patch("src.cli.close_backlog_client", new_callable=AsyncMock) as close:
            result = runner.invoke(app, ["issue", "show", "BLG-1"])

        assert result.exit_code == 1
        close.assert_awaited_once()

    def test_missing_configuration(self):
        with patch("src.cli.IssueAPI", side_effect=ConfigurationError("BACKLOG_BASE_URL is not set")):
            result = runner.invoke(app, ["issue", "show", "BLG-1"])

        assert result.exit_code == 1
        assert "BACKLOG_BASE_URL" in result.output


class TestIssueList:
    def test_project_key_resolved(self, issue_api, project_api):
        issue_api.list_issues.return_value = [_issue()]

        result = runner.invoke(
            app, ["issue", "list", "-p", "BLG", "--status", "1", "--status", "2", "--order", "desc"]
        )

        assert result.exit_code == 0
        (params,) = issue_api.list_issues.await_args.args
        assert params.project_ids == [ProjectId(10)]
        assert [int(s) for s in params.status_ids] == [1, 2]
        assert params.order.value == "desc"

    def test_invalid_status(self, issue_api, project_api):
        result = runner.invoke(app, ["issue", "list", "--status", "open"])

        assert result.exit_code == 2
        assert "invalid status: 'open'" in result.output

    def test_count_out_of_range(self, issue_api):
        result = runner.invoke(app, ["issue", "list", "--count", "101"])
        assert result.exit_code != 0
        issue_api.list_issues.assert_not_called()


class TestIssueCreate:
    def test_custom_fields(self, issue_api, project_api):
        issue_api.add_issue.return_value = _issue(issue_key="BLG-2")

        result = runner.invoke(
            app,
            [
                "issue", "create",
                "--project", "BLG",
                "--summary", "Crash on save",
                "--issue-type", "2",
                "--priority", "3",
                "--custom-field", "7:text:ACME",
                "--custom-field", "8:multiple_list:100,101",
            ],
        )

        assert result.exit_code == 0, result.output
        (params,) = issue_api.add_issue.await_args.args
        assert params.summary == "Crash on save"
        assert list(params.custom_fields) == [CustomFieldId(7), CustomFieldId(8)]

    def test_bad_custom_field(self, issue_api, project_api):
        result = runner.invoke(
            app,
            [
                "issue", "create",
                "--project", "BLG",
                "--summary", "x",
                "--issue-type", "2",
                "--priority", "3",
                "--custom-field", "7:color:red",
            ],
        )

        assert result.exit_code == 2
        assert "Unknown custom field type 'color'" in result.output
        issue_api.add_issue.assert_not_called()


class TestIssueUpdate:
    def test_sends_only_given_fields(self, issue_api):
        issue_api.update_issue.return_value = _issue()

        result = runner.invoke(app, ["issue", "update", "BLG-1", "--status", "4", "-c", "Fixed"])

        assert result.exit_code == 0
        (params,) = issue_api.update_issue.await_args.args
        assert int(params.status_id) == 4
        assert params.comment == "Fixed"
        assert params.summary is None

    def test_invalid_due_date(self, issue_api):
        result = runner.invoke(app, ["issue", "update", "BLG-1", "--due-date", "tomorrow"])

        assert result.exit_code == 2
        assert "invalid due_date: 'tomorrow'" in result.output


class TestAttachments:
    def test_list(self, issue_api):
        issue_api.list_attachments.return_value = [Attachment(id=3, name="log.txt", size=12)]

        result = runner.invoke(app, ["issue", "attachments", "BLG-1"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)[0]["name"] == "log.txt"

    def test_download_saves_file(self, issue_api, tmp_path):
        issue_api.download_attachment.return_value = DownloadedFile("log.txt", "text/plain", b"hello")

        result = runner.invoke(
            app, ["issue", "download", "BLG-1", "3", "--output", str(tmp_path)]
        )

        assert result.exit_code == 0
        assert (tmp_path / "log.txt").read_bytes() == b"hello"


def test_rate_limit():
    with patch("src.cli.SpaceAPI") as space_cls:
        space_cls.return_value.get_rate_limit = AsyncMock(
            return_value={"read": {"limit": 600, "remaining": 1, "reset": 0}}
        )
        result = runner.invoke(app, ["rate-limit"])

    assert result.exit_code == 0
    assert json.loads(result.stdout)["read"]["remaining"] == 1


def test_no_args_shows_help():
    result = runner.invoke(app, [])
    assert "issue" in result.output
