"""
MCP Server - Backlog 工具接口

提供给 LLM 调用的工具集，工具名统一带 BACKLOG_PREFIX 前缀（默认 backlog_）。

工具列表:
- Issue: get_issue_details / get_issue_list / add_issue / update_issue /
         get_issue_comments / add_comment / get_issue_attachment_list
- 项目: get_project_details / get_project_status_list / get_project_issue_types /
        get_version_milestone_list
- Wiki: get_wiki_list / get_wiki_details
- 文档: get_document_details
- 用户: get_user_list
- Git: get_repository_details / get_pull_request_list
- 其他: get_rate_limit

重要说明:
- 项目参数既可以是项目 Key（如 "BLG"）也可以是数值 ID（如 "123"）
- Issue 参数既可以是 Issue Key（如 "BLG-12"）也可以是数值 ID
- 参数非法时返回 "invalid <字段>: '<原始值>'"
- 配置 BACKLOG_PROJECTS 后只允许访问列表内的项目
"""

import functools
import inspect
import json
import logging
import re
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
from mcp.server.fastmcp import FastMCP

from src.core.arguments import (
    parse_argument,
    parse_choice,
    parse_date,
    parse_many,
    parse_optional,
)
from src.core.config import settings
from src.core.errors import (
    BacklogApiError,
    BacklogError,
    ConfigurationError,
    CustomFieldError,
    InvalidArgument,
    ProjectAccessDenied,
)
from src.core.identifiers import (
    AttachmentId,
    CommentId,
    DocumentId,
    IssueIdOrKey,
    IssueTypeId,
    PriorityId,
    ProjectId,
    ProjectIdOrKey,
    RepositoryIdOrName,
    ResolutionId,
    StatusId,
    UserId,
    WikiId,
)
from src.providers.backlog.access_control import AccessControl
from src.providers.backlog.api import (
    DocumentAPI,
    GitAPI,
    IssueAPI,
    ProjectAPI,
    SpaceAPI,
    UserAPI,
    WikiAPI,
)
from src.providers.backlog.api.common import Order
from src.providers.backlog.api.git import GetPullRequestListParams
from src.providers.backlog.api.issue import (
    AddCommentParams,
    AddIssueParams,
    GetCommentListParams,
    GetIssueListParams,
    UpdateIssueParams,
)
from src.providers.backlog.api.project import GetMilestoneListParams
from src.providers.backlog.api.wiki import GetWikiListParams
from src.providers.backlog.custom_fields import resolve_custom_fields


def _mask_sensitive_in_error(error_msg: str) -> str:
    """
    对错误信息中的敏感数据进行脱敏

    Args:
        error_msg: 原始错误信息

    Returns:
        脱敏后的错误信息
    """
    # apiKey 查询参数（可能出现在 httpx 异常的 URL 中）
    error_msg = re.sub(r"apiKey=[^&\s'\"]+", "apiKey=***", error_msg)
    # token/secret/authorization 相关的敏感值 (case insensitive)
    error_msg = re.sub(
        r"(?i)(token|secret|authorization|bearer)[=:\s]+[^\s,;\"']+",
        r"\1=***",
        error_msg,
    )
    return error_msg


def _error_response(
    operation: str,
    error_msg: str,
    error_code: Optional[str] = None,
) -> str:
    """
    生成统一的错误响应 JSON

    Args:
        operation: 操作名称，如 "获取 Issue 详情"
        error_msg: 错误信息（会自动脱敏）
        error_code: 错误码（可选），如 "ERR_VALIDATION"、"ERR_API"

    Returns:
        JSON 格式的错误响应字符串
    """
    safe_msg = _mask_sensitive_in_error(error_msg)
    response: Dict[str, Any] = {
        "success": False,
        "error": {
            "message": f"{operation}失败: {safe_msg}",
        },
    }
    if error_code:
        response["error"]["code"] = error_code
    return json.dumps(response, ensure_ascii=False, indent=2)


def _success_response(data: Any, message: Optional[str] = None) -> str:
    """生成统一的成功响应 JSON"""
    response: Dict[str, Any] = {
        "success": True,
        "data": data,
    }
    if message:
        response["message"] = message
    return json.dumps(response, ensure_ascii=False, indent=2)


def _dump(value: Any) -> Any:
    """模型 / 模型列表 -> JSON 兼容结构"""
    if isinstance(value, list):
        return [_dump(v) for v in value]
    if hasattr(value, "to_json_dict"):
        return value.to_json_dict()
    return value


# 在模块级别配置日志（确保在 logger 创建前配置）
# stdout 是 MCP 的通信通道，日志只能写文件或 stderr
if not logging.root.handlers:
    log_dir = Path("log")
    if log_dir.exists() and log_dir.is_dir():
        logging.basicConfig(
            level=settings.get_log_level(),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            filename=str(log_dir / "agent.log"),
            filemode="a",
            encoding="utf-8",
        )
    else:
        logging.basicConfig(
            level=settings.get_log_level(),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            stream=sys.stderr,
        )

logger = logging.getLogger(__name__)

# Initialize FastMCP server
mcp = FastMCP("Backlog")

TOOL_PREFIX = settings.BACKLOG_PREFIX

_access_control: Optional[AccessControl] = None


def get_access_control() -> AccessControl:
    global _access_control
    if _access_control is None:
        _access_control = AccessControl()
    return _access_control


def backlog_tool(operation: str) -> Callable:
    """
    装饰器：注册为 MCP 工具（名称带前缀），并把异常转换为统一的错误响应

    Args:
        operation: 错误信息中的操作名称
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        signature = inspect.signature(func)

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> str:
            # 参数名错误直接抛出 TypeError，由调用方处理
            signature.bind(*args, **kwargs)
            try:
                return await func(*args, **kwargs)
            except (InvalidArgument, CustomFieldError) as e:
                logger.warning("%s: invalid input: %s", func.__name__, e)
                return _error_response(operation, str(e), "ERR_VALIDATION")
            except ProjectAccessDenied as e:
                logger.warning("%s: %s", func.__name__, e)
                return _error_response(operation, str(e), "ERR_ACCESS_DENIED")
            except ConfigurationError as e:
                logger.error("%s: configuration error: %s", func.__name__, e)
                return _error_response(operation, str(e), "ERR_CONFIG")
            except BacklogApiError as e:
                logger.error("%s: Backlog API error: %s", func.__name__, e)
                return _error_response(operation, str(e), f"ERR_HTTP_{e.status}")
            except BacklogError as e:
                logger.error("%s: %s", func.__name__, e, exc_info=True)
                return _error_response(operation, str(e), "ERR_API")
            except httpx.HTTPError as e:
                logger.error("%s: HTTP error: %s", func.__name__, e, exc_info=True)
                return _error_response(operation, str(e), "ERR_HTTP")
            except Exception as e:
                # 记录完整信息以便调试，但不把内部细节返回给调用方
                logger.critical("Unexpected error in %s: %s", func.__name__, e, exc_info=True)
                return _error_response(operation, "系统内部错误", "ERR_INTERNAL")

        mcp.tool(name=f"{TOOL_PREFIX}{func.__name__}")(wrapper)
        return wrapper

    return decorator


async def _check_issue_access(issue_api: IssueAPI, issue: IssueIdOrKey):
    """
    校验 Issue 所属项目的访问权限

    Issue Key 自带项目 Key；数值形态需要先取回 Issue 得到项目 ID。

    Returns:
        已取回的 Issue（数值形态时），否则 None
    """
    access = get_access_control()
    if not access.is_enabled:
        return None
    if issue.id is None:
        access.check_issue_key(issue.key)
        return None
    fetched = await issue_api.get_issue(issue)
    await access.check_project_id(ProjectId(fetched.project_id))
    return fetched


async def _resolve_project_id(project: ProjectIdOrKey) -> ProjectId:
    """项目引用 -> 数值项目 ID（Key 形态需要请求项目详情）"""
    if project.id is not None:
        return project.id
    fetched = await ProjectAPI().get_project(project)
    return ProjectId(fetched.id)


async def _check_and_resolve_project(project: ProjectIdOrKey) -> ProjectId:
    await get_access_control().check_project(project)
    return await _resolve_project_id(project)


async def _resolve_custom_fields(
    project: ProjectIdOrKey, custom_fields: Optional[Dict[str, Any]]
):
    if not custom_fields:
        return None
    definitions = await ProjectAPI().list_custom_fields(project)
    return resolve_custom_fields(definitions, custom_fields)


# =============================================================================
# Issue
# =============================================================================
@backlog_tool("获取 Issue 详情")
async def get_issue_details(issue_id_or_key: str) -> str:
    """
    获取单个 Issue 的详情。

    Args:
        issue_id_or_key: Issue Key（如 "BLG-12"）或数值 Issue ID。

    Returns:
        JSON 格式的 Issue 详情。
    """
    issue = parse_argument("issue_id_or_key", IssueIdOrKey, issue_id_or_key)
    logger.info("Getting issue details: %s", issue)
    api = IssueAPI()
    fetched = await _check_issue_access(api, issue)
    result = fetched if fetched is not None else await api.get_issue(issue)
    return _success_response(_dump(result))


@backlog_tool("获取 Issue 列表")
async def get_issue_list(
    project_id_or_key: str,
    keyword: Optional[str] = None,
    status_ids: Optional[List[int]] = None,
    assignee_ids: Optional[List[int]] = None,
    order: Optional[str] = None,
    offset: Optional[int] = None,
    count: int = 20,
) -> str:
    """
    获取项目中的 Issue 列表。

    Args:
        project_id_or_key: 项目 Key 或数值项目 ID。
        keyword: 关键词（可选）。
        status_ids: 状态 ID 过滤（可选）。
        assignee_ids: 负责人 ID 过滤（可选）。
        order: 排序方向 "asc" / "desc"（可选）。
        offset: 偏移量（可选）。
        count: 返回数量（默认 20，最大 100）。
    """
    project = parse_argument("project_id_or_key", ProjectIdOrKey, project_id_or_key)
    params = GetIssueListParams(
        project_ids=[await _check_and_resolve_project(project)],
        keyword=keyword or None,
        status_ids=parse_many("status_ids", StatusId, status_ids),
        assignee_ids=parse_many("assignee_ids", UserId, assignee_ids),
        order=parse_choice("order", Order, order),
        offset=offset,
        count=min(max(count, 1), 100),
    )
    issues = await IssueAPI().list_issues(params)
    return _success_response({"count": len(issues), "issues": _dump(issues)})


@backlog_tool("创建 Issue")
async def add_issue(
    project_id_or_key: str,
    summary: str,
    issue_type_id: int,
    priority_id: int,
    description: Optional[str] = None,
    assignee_id: Optional[int] = None,
    start_date: Optional[str] = None,
    due_date: Optional[str] = None,
    notified_user_ids: Optional[List[int]] = None,
    attachment_ids: Optional[List[int]] = None,
    custom_fields: Optional[Dict[str, Any]] = None,
) -> str:
    """
    在项目中创建 Issue。

    Args:
        project_id_or_key: 项目 Key 或数值项目 ID。
        summary: 标题，必填。
        issue_type_id: Issue 类型 ID（可通过 get_project_issue_types 查询）。
        priority_id: 优先级 ID（2: 高, 3: 中, 4: 低）。
        description: 描述（可选）。
        assignee_id: 负责人用户 ID（可选）。
        start_date / due_date: yyyy-MM-dd（可选）。
        notified_user_ids: 需要通知的用户 ID（可选）。
        attachment_ids: 已上传附件 ID（可选）。
        custom_fields: 自定义字段，按字段名传值，如 {"客户": "ACME", "标签": ["a", "b"]}。
    """
    project = parse_argument("project_id_or_key", ProjectIdOrKey, project_id_or_key)
    params = AddIssueParams(
        project_id=await _check_and_resolve_project(project),
        summary=summary,
        issue_type_id=parse_argument("issue_type_id", IssueTypeId, issue_type_id),
        priority_id=parse_argument("priority_id", PriorityId, priority_id),
        description=description or None,
        assignee_id=parse_optional("assignee_id", UserId, assignee_id),
        start_date=parse_date("start_date", start_date),
        due_date=parse_date("due_date", due_date),
        notified_user_ids=parse_many("notified_user_ids", UserId, notified_user_ids),
        attachment_ids=parse_many("attachment_ids", AttachmentId, attachment_ids),
        custom_fields=await _resolve_custom_fields(project, custom_fields),
    )
    issue = await IssueAPI().add_issue(params)
    logger.info("Issue created: %s", issue.issue_key)
    return _success_response(_dump(issue), message=f"创建成功: {issue.issue_key}")


@backlog_tool("更新 Issue")
async def update_issue(
    issue_id_or_key: str,
    summary: Optional[str] = None,
    description: Optional[str] = None,
    status_id: Optional[int] = None,
    priority_id: Optional[int] = None,
    assignee_id: Optional[int] = None,
    resolution_id: Optional[int] = None,
    due_date: Optional[str] = None,
    comment: Optional[str] = None,
    custom_fields: Optional[Dict[str, Any]] = None,
) -> str:
    """
    更新 Issue 的字段，只提交传入的字段。

    Args:
        issue_id_or_key: Issue Key（如 "BLG-12"）或数值 Issue ID。
        summary / description: 新标题 / 描述（可选）。
        status_id / priority_id / assignee_id / resolution_id: 对应 ID（可选）。
        due_date: yyyy-MM-dd（可选）。
        comment: 随更新一起添加的评论（可选）。
        custom_fields: 自定义字段，按字段名传值。
    """
    issue = parse_argument("issue_id_or_key", IssueIdOrKey, issue_id_or_key)
    api = IssueAPI()
    fetched = await _check_issue_access(api, issue)

    resolved_fields = None
    if custom_fields:
        if fetched is None and issue.id is not None:
            fetched = await api.get_issue(issue)
        if fetched is not None:
            project = ProjectIdOrKey.of(ProjectId(fetched.project_id))
        else:
            project = ProjectIdOrKey.of(issue.key.project_key)
        resolved_fields = await _resolve_custom_fields(project, custom_fields)

    params = UpdateIssueParams(
        issue_id_or_key=issue,
        summary=summary or None,
        description=description,
        status_id=parse_optional("status_id", StatusId, status_id),
        priority_id=parse_optional("priority_id", PriorityId, priority_id),
        assignee_id=parse_optional("assignee_id", UserId, assignee_id),
        resolution_id=parse_optional("resolution_id", ResolutionId, resolution_id),
        due_date=parse_date("due_date", due_date),
        comment=comment or None,
        custom_fields=resolved_fields,
    )
    updated = await api.update_issue(params)
    return _success_response(_dump(updated), message=f"更新成功: {updated.issue_key}")


@backlog_tool("获取 Issue 评论")
async def get_issue_comments(
    issue_id_or_key: str,
    min_id: Optional[int] = None,
    max_id: Optional[int] = None,
    count: Optional[int] = None,
    order: Optional[str] = None,
) -> str:
    """
    获取 Issue 的评论列表。

    Args:
        issue_id_or_key: Issue Key 或数值 Issue ID。
        min_id / max_id: 评论 ID 范围（可选）。
        count: 返回数量（1-100，可选）。
        order: "asc" / "desc"（可选）。
    """
    issue = parse_argument("issue_id_or_key", IssueIdOrKey, issue_id_or_key)
    api = IssueAPI()
    await _check_issue_access(api, issue)
    params = GetCommentListParams(
        issue_id_or_key=issue,
        min_id=parse_optional("min_id", CommentId, min_id),
        max_id=parse_optional("max_id", CommentId, max_id),
        count=count,
        order=parse_choice("order", Order, order),
    )
    comments = await api.list_comments(params)
    return _success_response({"count": len(comments), "comments": _dump(comments)})


@backlog_tool("添加评论")
async def add_comment(
    issue_id_or_key: str,
    content: str,
    notified_user_ids: Optional[List[int]] = None,
    attachment_ids: Optional[List[int]] = None,
) -> str:
    """
    为 Issue 添加评论。

    Args:
        issue_id_or_key: Issue Key 或数值 Issue ID。
        content: 评论内容。
        notified_user_ids: 需要通知的用户 ID（可选）。
        attachment_ids: 已上传附件 ID（可选）。
    """
    issue = parse_argument("issue_id_or_key", IssueIdOrKey, issue_id_or_key)
    api = IssueAPI()
    await _check_issue_access(api, issue)
    params = AddCommentParams(
        issue_id_or_key=issue,
        content=content,
        notified_user_ids=parse_many("notified_user_ids", UserId, notified_user_ids),
        attachment_ids=parse_many("attachment_ids", AttachmentId, attachment_ids),
    )
    comment = await api.add_comment(params)
    return _success_response(_dump(comment))


@backlog_tool("获取 Issue 附件列表")
async def get_issue_attachment_list(issue_id_or_key: str) -> str:
    """
    获取 Issue 的附件列表。

    Args:
        issue_id_or_key: Issue Key 或数值 Issue ID。
    """
    issue = parse_argument("issue_id_or_key", IssueIdOrKey, issue_id_or_key)
    api = IssueAPI()
    await _check_issue_access(api, issue)
    attachments = await api.list_attachments(issue)
    return _success_response(_dump(attachments))


# =============================================================================
# 项目
# =============================================================================
async def _checked_project(project_id_or_key: str) -> ProjectIdOrKey:
    project = parse_argument("project_id_or_key", ProjectIdOrKey, project_id_or_key)
    await get_access_control().check_project(project)
    return project


@backlog_tool("获取项目详情")
async def get_project_details(project_id_or_key: str) -> str:
    """
    获取项目详情。

    Args:
        project_id_or_key: 项目 Key（如 "BLG"）或数值项目 ID。
    """
    project = await _checked_project(project_id_or_key)
    return _success_response(_dump(await ProjectAPI().get_project(project)))


@backlog_tool("获取项目状态列表")
async def get_project_status_list(project_id_or_key: str) -> str:
    """获取项目的状态列表（更新 Issue 时的 status_id 来源）。"""
    project = await _checked_project(project_id_or_key)
    return _success_response(_dump(await ProjectAPI().list_statuses(project)))


@backlog_tool("获取 Issue 类型列表")
async def get_project_issue_types(project_id_or_key: str) -> str:
    """获取项目的 Issue 类型列表（创建 Issue 时的 issue_type_id 来源）。"""
    project = await _checked_project(project_id_or_key)
    return _success_response(_dump(await ProjectAPI().list_issue_types(project)))


@backlog_tool("获取里程碑列表")
async def get_version_milestone_list(
    project_id_or_key: str, archived: Optional[bool] = None
) -> str:
    """
    获取项目的版本 / 里程碑列表。

    Args:
        project_id_or_key: 项目 Key 或数值项目 ID。
        archived: 是否只看已归档（可选）。
    """
    project = await _checked_project(project_id_or_key)
    params = GetMilestoneListParams(project_id_or_key=project, archived=archived)
    return _success_response(_dump(await ProjectAPI().list_milestones(params)))


# =============================================================================
# Wiki / 文档
# =============================================================================
@backlog_tool("获取 Wiki 列表")
async def get_wiki_list(project_id_or_key: str, keyword: Optional[str] = None) -> str:
    """
    获取项目的 Wiki 页面列表。

    Args:
        project_id_or_key: 项目 Key 或数值项目 ID。
        keyword: 关键词（可选）。
    """
    project = await _checked_project(project_id_or_key)
    params = GetWikiListParams(project_id_or_key=project, keyword=keyword or None)
    return _success_response(_dump(await WikiAPI().list_wikis(params)))


@backlog_tool("获取 Wiki 详情")
async def get_wiki_details(wiki_id: int) -> str:
    """
    获取 Wiki 页面详情（含正文）。

    Args:
        wiki_id: 数值 Wiki ID。
    """
    wiki = await WikiAPI().get_wiki(parse_argument("wiki_id", WikiId, wiki_id))
    await get_access_control().check_project_id(ProjectId(wiki.project_id))
    return _success_response(_dump(wiki))


@backlog_tool("获取文档详情")
async def get_document_details(document_id: str) -> str:
    """
    获取文档详情。

    Args:
        document_id: 32 位十六进制文档 ID。
    """
    document = await DocumentAPI().get_document(
        parse_argument("document_id", DocumentId, document_id)
    )
    await get_access_control().check_project_id(ProjectId(document.project_id))
    return _success_response(_dump(document))


# =============================================================================
# 用户 / Git / 其他
# =============================================================================
@backlog_tool("获取用户列表")
async def get_user_list() -> str:
    """获取 Space 内的用户列表（assignee_id / notified_user_ids 的来源）。"""
    users = await UserAPI().list_users()
    return _success_response({"count": len(users), "users": _dump(users)})


@backlog_tool("获取仓库详情")
async def get_repository_details(project_id_or_key: str, repo_id_or_name: str) -> str:
    """
    获取 Git 仓库详情。

    Args:
        project_id_or_key: 项目 Key 或数值项目 ID。
        repo_id_or_name: 仓库名或数值仓库 ID。
    """
    project = await _checked_project(project_id_or_key)
    repository = parse_argument("repo_id_or_name", RepositoryIdOrName, repo_id_or_name)
    return _success_response(_dump(await GitAPI().get_repository(project, repository)))


@backlog_tool("获取 Pull Request 列表")
async def get_pull_request_list(
    project_id_or_key: str,
    repo_id_or_name: str,
    status_ids: Optional[List[int]] = None,
    assignee_ids: Optional[List[int]] = None,
    count: Optional[int] = None,
) -> str:
    """
    获取仓库的 Pull Request 列表。

    Args:
        project_id_or_key: 项目 Key 或数值项目 ID。
        repo_id_or_name: 仓库名或数值仓库 ID。
        status_ids: 1: Open, 2: Closed, 3: Merged（可选）。
        assignee_ids: 负责人 ID（可选）。
        count: 返回数量（可选）。
    """
    project = await _checked_project(project_id_or_key)
    params = GetPullRequestListParams(
        project_id_or_key=project,
        repo_id_or_name=parse_argument("repo_id_or_name", RepositoryIdOrName, repo_id_or_name),
        status_ids=status_ids or None,
        assignee_ids=parse_many("assignee_ids", UserId, assignee_ids),
        count=count,
    )
    pull_requests = await GitAPI().list_pull_requests(params)
    return _success_response({"count": len(pull_requests), "pull_requests": _dump(pull_requests)})


@backlog_tool("获取速率限制")
async def get_rate_limit() -> str:
    """获取当前 API Key / Token 的速率限制状态。"""
    return _success_response(_dump(await SpaceAPI().get_rate_limit()))


def main():
    """
    MCP Server 入口点
    """
    logger.info("Starting MCP Server (Backlog)")
    logger.info("Log level: %s, tool prefix: %s", settings.LOG_LEVEL, TOOL_PREFIX)

    try:
        mcp.run()
    except KeyboardInterrupt:
        logger.info("MCP Server stopped by user")
    except Exception as e:
        logger.critical("MCP Server crashed: %s", e, exc_info=True)
        raise


if __name__ == "__main__":
    main()
