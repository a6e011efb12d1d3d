"""
blg - Backlog 命令行工具

使用示例:
    blg issue show BLG-1
    blg issue list --project BLG --status 1 --status 2
    blg issue create --project BLG --summary "Crash on save" --issue-type 10 --priority 3
    blg issue download BLG-1 42 --output ./downloads
    blg project show BLG
    blg space upload ./screenshot.png
    blg rate-limit

参数非法时以退出码 2 结束并输出 "invalid <字段>: '<原始值>'"。
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

import httpx
import typer
from rich.console import Console
from rich.markup import escape

from src.core.arguments import parse_argument, parse_choice, parse_date, parse_many, parse_optional
from src.core.backlog_client import close_backlog_client
from src.core.config import settings
from src.core.errors import BacklogError, ConfigurationError, CustomFieldError, InvalidArgument
from src.core.identifiers import (
    AttachmentId,
    CategoryId,
    IssueIdOrKey,
    IssueTypeId,
    MilestoneId,
    PriorityId,
    ProjectId,
    ProjectIdOrKey,
    ResolutionId,
    StatusId,
    UserId,
)
from src.core.request import DownloadedFile
from src.providers.backlog.api import IssueAPI, ProjectAPI, SpaceAPI, WikiAPI
from src.providers.backlog.api.common import Order
from src.providers.backlog.api.issue import (
    AddCommentParams,
    AddIssueParams,
    GetIssueListParams,
    UpdateIssueParams,
)
from src.providers.backlog.api.wiki import GetWikiListParams
from src.providers.backlog.custom_fields import parse_custom_field_option

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="blg",
    help="Backlog command line client.",
    no_args_is_help=True,
)
issue_app = typer.Typer(help="Issue operations", no_args_is_help=True)
project_app = typer.Typer(help="Project operations", no_args_is_help=True)
space_app = typer.Typer(help="Space operations", no_args_is_help=True)
wiki_app = typer.Typer(help="Wiki operations", no_args_is_help=True)
app.add_typer(issue_app, name="issue")
app.add_typer(project_app, name="project")
app.add_typer(space_app, name="space")
app.add_typer(wiki_app, name="wiki")

err_console = Console(stderr=True)


class ExitCode:
    SUCCESS = 0
    API_ERROR = 1
    INVALID_ARGUMENT = 2


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log HTTP activity to stderr"),
):
    level = logging.DEBUG if verbose else settings.get_log_level()
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _fail(message: str, code: int) -> typer.Exit:
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    return typer.Exit(code)


def _run(call: Callable[[], Awaitable[Any]]) -> Any:
    """执行异步调用，并把异常转换为退出码

    call 在 try 内才创建协程，客户端初始化错误同样被转换。
    """
    try:
        return asyncio.run(_await(call))
    except (InvalidArgument, CustomFieldError) as e:
        raise _fail(str(e), ExitCode.INVALID_ARGUMENT) from e
    except ConfigurationError as e:
        raise _fail(str(e), ExitCode.API_ERROR) from e
    except BacklogError as e:
        logger.debug("Backlog error", exc_info=True)
        raise _fail(str(e), ExitCode.API_ERROR) from e
    except httpx.HTTPError as e:
        raise _fail(f"HTTP error: {e}", ExitCode.API_ERROR) from e


async def _await(call: Callable[[], Awaitable[Any]]) -> Any:
    # 单例客户端绑定在本次事件循环上，循环结束前关闭
    try:
        return await call()
    finally:
        await close_backlog_client()


def _arg(field: str, cls: type, raw: Any) -> Any:
    """在进入事件循环之前校验参数"""
    try:
        return parse_argument(field, cls, raw)
    except InvalidArgument as e:
        raise _fail(str(e), ExitCode.INVALID_ARGUMENT) from e


def _args(func, *args) -> Any:
    try:
        return func(*args)
    except (InvalidArgument, CustomFieldError) as e:
        raise _fail(str(e), ExitCode.INVALID_ARGUMENT) from e


def _print(data: Any) -> None:
    if isinstance(data, list):
        data = [item.to_json_dict() if hasattr(item, "to_json_dict") else item for item in data]
    elif hasattr(data, "to_json_dict"):
        data = data.to_json_dict()
    typer.echo(json.dumps(data, ensure_ascii=False, indent=2))


def _save(downloaded: DownloadedFile, output: Optional[Path]) -> None:
    target = downloaded.save(output)
    err_console.print(
        f"Saved {escape(downloaded.filename)} ({downloaded.size} bytes, "
        f"{escape(downloaded.content_type)}) to {escape(str(target))}"
    )


def _custom_fields(raw_fields: Optional[List[str]]):
    if not raw_fields:
        return None
    return dict(_args(parse_custom_field_option, raw) for raw in raw_fields)


async def _project_id(project: ProjectIdOrKey) -> ProjectId:
    if project.id is not None:
        return project.id
    return ProjectId((await ProjectAPI().get_project(project)).id)


# =============================================================================
# issue
# =============================================================================
@issue_app.command("show")
def issue_show(issue_id_or_key: str = typer.Argument(..., help="Issue key (BLG-1) or numeric ID")):
    """Show issue details."""
    issue = _arg("issue_id_or_key", IssueIdOrKey, issue_id_or_key)
    _print(_run(lambda: IssueAPI().get_issue(issue)))


@issue_app.command("list")
def issue_list(
    project: List[str] = typer.Option(None, "--project", "-p", help="Project key or ID"),
    status: List[str] = typer.Option(None, "--status", help="Status ID"),
    assignee: List[str] = typer.Option(None, "--assignee", help="Assignee user ID"),
    category: List[str] = typer.Option(None, "--category", help="Category ID"),
    milestone: List[str] = typer.Option(None, "--milestone", help="Milestone ID"),
    keyword: Optional[str] = typer.Option(None, "--keyword", "-k"),
    due_since: Optional[str] = typer.Option(None, "--due-since", help="yyyy-MM-dd"),
    due_until: Optional[str] = typer.Option(None, "--due-until", help="yyyy-MM-dd"),
    order: Optional[str] = typer.Option(None, "--order", help="asc / desc"),
    offset: Optional[int] = typer.Option(None, "--offset"),
    count: Optional[int] = typer.Option(None, "--count", min=1, max=100),
):
    """List issues."""
    projects = _args(parse_many, "project", ProjectIdOrKey, project or None)

    async def _list():
        project_ids = [await _project_id(p) for p in projects] if projects else None
        params = GetIssueListParams(
            project_ids=project_ids,
            status_ids=parse_many("status", StatusId, status or None),
            assignee_ids=parse_many("assignee", UserId, assignee or None),
            category_ids=parse_many("category", CategoryId, category or None),
            milestone_ids=parse_many("milestone", MilestoneId, milestone or None),
            keyword=keyword,
            due_date_since=parse_date("due_since", due_since),
            due_date_until=parse_date("due_until", due_until),
            order=parse_choice("order", Order, order),
            offset=offset,
            count=count,
        )
        return await IssueAPI().list_issues(params)

    _print(_run(_list))


@issue_app.command("create")
def issue_create(
    project: str = typer.Option(..., "--project", "-p", help="Project key or ID"),
    summary: str = typer.Option(..., "--summary", "-s"),
    issue_type: str = typer.Option(..., "--issue-type", help="Issue type ID"),
    priority: str = typer.Option(..., "--priority", help="Priority ID"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    assignee: Optional[str] = typer.Option(None, "--assignee"),
    start_date: Optional[str] = typer.Option(None, "--start-date", help="yyyy-MM-dd"),
    due_date: Optional[str] = typer.Option(None, "--due-date", help="yyyy-MM-dd"),
    notify: List[str] = typer.Option(None, "--notify", help="User ID to notify"),
    attachment: List[str] = typer.Option(None, "--attachment", help="Uploaded attachment ID"),
    custom_field: List[str] = typer.Option(
        None, "--custom-field", help="id:type:value[:other], e.g. 4:single_list:100"
    ),
):
    """Create an issue."""
    project_ref = _arg("project", ProjectIdOrKey, project)

    async def _create():
        params = AddIssueParams(
            project_id=await _project_id(project_ref),
            summary=summary,
            issue_type_id=parse_argument("issue_type", IssueTypeId, issue_type),
            priority_id=parse_argument("priority", PriorityId, priority),
            description=description,
            assignee_id=parse_optional("assignee", UserId, assignee),
            start_date=parse_date("start_date", start_date),
            due_date=parse_date("due_date", due_date),
            notified_user_ids=parse_many("notify", UserId, notify or None),
            attachment_ids=parse_many("attachment", AttachmentId, attachment or None),
            custom_fields=_custom_fields(custom_field),
        )
        return await IssueAPI().add_issue(params)

    _print(_run(_create))


@issue_app.command("update")
def issue_update(
    issue_id_or_key: str = typer.Argument(..., help="Issue key or numeric ID"),
    summary: Optional[str] = typer.Option(None, "--summary", "-s"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    status: Optional[str] = typer.Option(None, "--status", help="Status ID"),
    priority: Optional[str] = typer.Option(None, "--priority", help="Priority ID"),
    assignee: Optional[str] = typer.Option(None, "--assignee", help="Assignee user ID"),
    resolution: Optional[str] = typer.Option(None, "--resolution", help="Resolution ID"),
    due_date: Optional[str] = typer.Option(None, "--due-date", help="yyyy-MM-dd"),
    comment: Optional[str] = typer.Option(None, "--comment", "-c"),
    custom_field: List[str] = typer.Option(None, "--custom-field", help="id:type:value[:other]"),
):
    """Update an issue; only the given fields are sent."""
    params = _args(
        lambda: UpdateIssueParams(
            issue_id_or_key=parse_argument("issue_id_or_key", IssueIdOrKey, issue_id_or_key),
            summary=summary,
            description=description,
            status_id=parse_optional("status", StatusId, status),
            priority_id=parse_optional("priority", PriorityId, priority),
            assignee_id=parse_optional("assignee", UserId, assignee),
            resolution_id=parse_optional("resolution", ResolutionId, resolution),
            due_date=parse_date("due_date", due_date),
            comment=comment,
            custom_fields=_custom_fields(custom_field),
        )
    )
    _print(_run(lambda: IssueAPI().update_issue(params)))


@issue_app.command("comment")
def issue_comment(
    issue_id_or_key: str = typer.Argument(..., help="Issue key or numeric ID"),
    content: str = typer.Option(..., "--content", "-m"),
    notify: List[str] = typer.Option(None, "--notify", help="User ID to notify"),
):
    """Add a comment to an issue."""
    params = _args(
        lambda: AddCommentParams(
            issue_id_or_key=parse_argument("issue_id_or_key", IssueIdOrKey, issue_id_or_key),
            content=content,
            notified_user_ids=parse_many("notify", UserId, notify or None),
        )
    )
    _print(_run(lambda: IssueAPI().add_comment(params)))


@issue_app.command("attachments")
def issue_attachments(issue_id_or_key: str = typer.Argument(..., help="Issue key or numeric ID")):
    """List issue attachments."""
    issue = _arg("issue_id_or_key", IssueIdOrKey, issue_id_or_key)
    _print(_run(lambda: IssueAPI().list_attachments(issue)))


@issue_app.command("download")
def issue_download(
    issue_id_or_key: str = typer.Argument(..., help="Issue key or numeric ID"),
    attachment_id: str = typer.Argument(..., help="Attachment ID"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Target directory"),
):
    """Download an issue attachment."""
    issue = _arg("issue_id_or_key", IssueIdOrKey, issue_id_or_key)
    attachment = _arg("attachment_id", AttachmentId, attachment_id)
    _save(_run(lambda: IssueAPI().download_attachment(issue, attachment)), output)


# =============================================================================
# project / space / wiki
# =============================================================================
@project_app.command("show")
def project_show(project_id_or_key: str = typer.Argument(..., help="Project key or ID")):
    """Show project details."""
    project = _arg("project_id_or_key", ProjectIdOrKey, project_id_or_key)
    _print(_run(lambda: ProjectAPI().get_project(project)))


@project_app.command("statuses")
def project_statuses(project_id_or_key: str = typer.Argument(..., help="Project key or ID")):
    """List project statuses."""
    project = _arg("project_id_or_key", ProjectIdOrKey, project_id_or_key)
    _print(_run(lambda: ProjectAPI().list_statuses(project)))


@project_app.command("icon")
def project_icon(
    project_id_or_key: str = typer.Argument(..., help="Project key or ID"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Target directory"),
):
    """Download the project icon."""
    project = _arg("project_id_or_key", ProjectIdOrKey, project_id_or_key)
    _save(_run(lambda: ProjectAPI().download_icon(project)), output)


@space_app.command("upload")
def space_upload(file_path: Path = typer.Argument(..., help="Local file to upload")):
    """Upload a file; the returned ID can be attached to issues and comments."""
    _print(_run(lambda: SpaceAPI().upload_attachment(file_path)))


@wiki_app.command("list")
def wiki_list(
    project_id_or_key: str = typer.Argument(..., help="Project key or ID"),
    keyword: Optional[str] = typer.Option(None, "--keyword", "-k"),
):
    """List wiki pages of a project."""
    project = _arg("project_id_or_key", ProjectIdOrKey, project_id_or_key)
    params = GetWikiListParams(project_id_or_key=project, keyword=keyword)
    _print(_run(lambda: WikiAPI().list_wikis(params)))


@app.command("rate-limit")
def rate_limit():
    """Show API rate limit status."""
    _print(_run(lambda: SpaceAPI().get_rate_limit()))


def main():
    app()


if __name__ == "__main__":
    main()
