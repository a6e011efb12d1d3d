from unittest.mock import AsyncMock

import pytest

from src.core.errors import BacklogApiError, InvalidProjectKey, ProjectAccessDenied
from src.core.identifiers import IssueKey, ProjectId, ProjectIdOrKey, ProjectKey
from src.providers.backlog.access_control import AccessControl
from src.schemas.backlog import Project


def _project(project_id: int, key: str) -> Project:
    return Project(id=project_id, project_key=key, name=key)


@pytest.fixture
def project_api():
    api = AsyncMock()
    api.get_project.return_value = _project(10, "BLG")
    return api


@pytest.fixture
def access_control(project_api):
    return AccessControl(allowed_projects=["BLG", "DEV"], project_api=project_api)


class TestConfiguration:
    def test_disabled_when_empty(self, project_api):
        control = AccessControl(allowed_projects=[], project_api=project_api)
        assert control.is_enabled is False

    def test_reads_settings(self, monkeypatch):
        monkeypatch.setattr("src.core.config.settings.BACKLOG_PROJECTS", "BLG, DEV")
        control = AccessControl()
        assert control.allowed_projects == [ProjectKey("BLG"), ProjectKey("DEV")]

    def test_invalid_key_rejected_at_startup(self):
        with pytest.raises(InvalidProjectKey):
            AccessControl(allowed_projects=["blg"])

    @pytest.mark.asyncio
    async def test_disabled_allows_everything(self, project_api):
        control = AccessControl(allowed_projects=[], project_api=project_api)
        await control.check_project(ProjectIdOrKey.parse("ANY"))
        await control.check_project(ProjectIdOrKey.parse("99"))
        project_api.get_project.assert_not_called()


class TestKeyChecks:
    @pytest.mark.asyncio
    async def test_allowed_key(self, access_control, project_api):
        await access_control.check_project(ProjectIdOrKey.parse("BLG"))
        project_api.get_project.assert_not_called()

    @pytest.mark.asyncio
    async def test_denied_key(self, access_control):
        with pytest.raises(ProjectAccessDenied) as exc_info:
            await access_control.check_project(ProjectIdOrKey.parse("OPS"))
        assert exc_info.value.project == "OPS"
        assert exc_info.value.allowed_projects == ["BLG", "DEV"]

    def test_issue_key_uses_project_part(self, access_control):
        access_control.check_issue_key(IssueKey.parse("DEV-3"))
        with pytest.raises(ProjectAccessDenied):
            access_control.check_issue_key(IssueKey.parse("OPS-3"))


class TestIdResolution:
    @pytest.mark.asyncio
    async def test_numeric_id_resolved_and_cached(self, access_control, project_api):
        await access_control.check_project(ProjectIdOrKey.parse("10"))
        await access_control.check_project(ProjectIdOrKey.parse("10"))

        project_api.get_project.assert_awaited_once()
        (requested,) = project_api.get_project.await_args.args
        assert str(requested) == "10"

    @pytest.mark.asyncio
    async def test_numeric_id_of_other_project_denied(self, access_control, project_api):
        project_api.get_project.return_value = _project(20, "OPS")
        with pytest.raises(ProjectAccessDenied) as exc_info:
            await access_control.check_project_id(ProjectId(20))
        assert exc_info.value.project == "20"

    @pytest.mark.asyncio
    async def test_lookup_failure_is_denied(self, access_control, project_api):
        project_api.get_project.side_effect = BacklogApiError(404, [{"message": "No project"}])
        with pytest.raises(ProjectAccessDenied) as exc_info:
            await access_control.check_project_id(ProjectId(404))
        assert isinstance(exc_info.value.__cause__, BacklogApiError)

    @pytest.mark.asyncio
    async def test_zero_project_id_denied_without_lookup(self, access_control, project_api):
        with pytest.raises(ProjectAccessDenied) as exc_info:
            await access_control.check_project_id(ProjectId(0))
        assert exc_info.value.project == "0"
        project_api.get_project.assert_not_called()

    @pytest.mark.asyncio
    async def test_resolve_project_key(self, access_control):
        assert await access_control.resolve_project_key(ProjectId(10)) == ProjectKey("BLG")
