"""
HTTP API 包装器 - 将 Backlog MCP 工具包装成 HTTP 服务供 n8n 等外部系统调用

启动方式:
    python -m src.http_server

API 端点:
    POST /call_tool
    请求体: {"tool_name": "backlog_get_issue_details", "parameters": {"issue_id_or_key": "BLG-1"}}
    返回: MCP 工具的执行结果

    GET /tools   可用工具列表
    GET /health  健康检查
"""

import json
import logging
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from src.core.config import settings

# =============================================================================
# 日志配置：Stderr + File
# =============================================================================
log_dir = Path("log")
log_dir.mkdir(exist_ok=True)
log_file = log_dir / "agent.log"

formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

# stdout 不输出日志
stderr_handler = logging.StreamHandler(sys.stderr)
stderr_handler.setFormatter(formatter)

file_handler = logging.FileHandler(log_file, encoding="utf-8")
file_handler.setFormatter(formatter)

logging.basicConfig(
    level=settings.get_log_level(),
    handlers=[stderr_handler, file_handler],
    force=True,
)

for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
    logger_obj = logging.getLogger(logger_name)
    logger_obj.handlers = [stderr_handler, file_handler]
    logger_obj.propagate = False

logger = logging.getLogger(__name__)
logger.info("Logging configured. Log file: %s", log_file.absolute())


# =============================================================================
# 工具注册表 - 集中管理所有可用工具
# =============================================================================
@dataclass
class ToolDefinition:
    """工具定义"""

    name: str
    description: str
    func: Callable[..., Awaitable[str]]


# (函数名, 描述)；注册名为 BACKLOG_PREFIX + 函数名，与 MCP 工具名一致
_TOOLS = [
    ("get_issue_details", "获取单个 Issue 的详情"),
    ("get_issue_list", "获取项目中的 Issue 列表，支持关键词 / 状态 / 负责人过滤"),
    ("add_issue", "在项目中创建 Issue，自定义字段按字段名传值"),
    ("update_issue", "更新 Issue 的字段"),
    ("get_issue_comments", "获取 Issue 的评论列表"),
    ("add_comment", "为 Issue 添加评论"),
    ("get_issue_attachment_list", "获取 Issue 的附件列表"),
    ("get_project_details", "获取项目详情"),
    ("get_project_status_list", "获取项目的状态列表"),
    ("get_project_issue_types", "获取项目的 Issue 类型列表"),
    ("get_version_milestone_list", "获取项目的版本 / 里程碑列表"),
    ("get_wiki_list", "获取项目的 Wiki 页面列表"),
    ("get_wiki_details", "获取 Wiki 页面详情"),
    ("get_document_details", "获取文档详情"),
    ("get_user_list", "获取 Space 内的用户列表"),
    ("get_repository_details", "获取 Git 仓库详情"),
    ("get_pull_request_list", "获取仓库的 Pull Request 列表"),
    ("get_rate_limit", "获取 API 速率限制状态"),
]


def _get_tool_registry() -> dict[str, ToolDefinition]:
    """获取工具注册表（延迟加载，避免导入时初始化 MCP Server）"""
    from src import mcp_server

    registry = {}
    for func_name, description in _TOOLS:
        name = f"{settings.BACKLOG_PREFIX}{func_name}"
        registry[name] = ToolDefinition(
            name=name,
            description=description,
            func=getattr(mcp_server, func_name),
        )
    return registry


_tool_registry: dict[str, ToolDefinition] | None = None


def get_tool_registry() -> dict[str, ToolDefinition]:
    """获取工具注册表（带缓存）"""
    global _tool_registry
    if _tool_registry is None:
        _tool_registry = _get_tool_registry()
    return _tool_registry


class ToolCallRequest(BaseModel):
    """工具调用请求模型"""

    tool_name: str
    parameters: dict[str, Any] = {}


class ToolCallResponse(BaseModel):
    """工具调用响应模型"""

    success: bool
    data: Any = None
    error: str | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("Starting HTTP wrapper for Backlog MCP Server")
    yield
    logger.info("Shutting down HTTP wrapper")


app = FastAPI(
    title="Backlog MCP Server HTTP Wrapper",
    description="将 Backlog MCP 工具包装成 HTTP API 供外部调用",
    version="0.1.0",
    lifespan=lifespan,
)


def _normalize_parameters(parameters: dict[str, Any]) -> dict[str, Any]:
    """
    标准化工具参数类型

    n8n 等客户端常把数值以字符串传入；分页参数在这里转换为 int。
    标识符参数（*_id / *_ids）由工具自身校验，保留原样。
    """
    int_fields = {"offset", "count", "min_id", "max_id"}
    list_int_fields = {"status_ids"}

    normalized = {}
    for key, value in parameters.items():
        if key in int_fields and isinstance(value, str) and value.strip():
            try:
                normalized[key] = int(value)
            except ValueError:
                normalized[key] = value
        elif key in list_int_fields and isinstance(value, list):
            try:
                normalized[key] = [int(v) for v in value]
            except (ValueError, TypeError):
                normalized[key] = value
        else:
            normalized[key] = value
    return normalized


async def call_mcp_tool(tool_name: str, parameters: dict[str, Any]) -> Any:
    """
    调用 MCP 工具

    Raises:
        ValueError: 工具不存在
    """
    logger.info("Calling MCP tool: %s with params: %s", tool_name, list(parameters))

    registry = get_tool_registry()
    tool_def = registry.get(tool_name)
    if tool_def is None:
        available = list(registry.keys())
        raise ValueError(f"不支持的工具: {tool_name}。支持的工具: {available}")

    try:
        result = await tool_def.func(**_normalize_parameters(parameters))
    except TypeError as e:
        # 参数名错误 / 缺少必填参数
        raise ValueError(f"工具参数错误: {e}") from e

    if isinstance(result, str):
        try:
            return json.loads(result)
        except json.JSONDecodeError:
            return {"message": result}
    return result


@app.post("/call_tool", response_model=ToolCallResponse)
async def call_tool(request: ToolCallRequest):
    """
    调用 MCP 工具的 HTTP 接口
    """
    try:
        result = await call_mcp_tool(request.tool_name, request.parameters)
    except ValueError as e:
        logger.warning("Validation error: %s", e)
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Internal error: %s", e, exc_info=True)
        return ToolCallResponse(success=False, error=f"调用工具失败: {e}")

    # 工具自身返回 {"success": false, "error": {...}} 时如实透传
    if isinstance(result, dict) and result.get("success") is False:
        error = result.get("error") or {}
        return ToolCallResponse(success=False, data=result, error=error.get("message"))
    return ToolCallResponse(success=True, data=result)


@app.get("/health")
async def health_check():
    """健康检查接口"""
    return {"status": "healthy", "service": "backlog-mcp-http-wrapper"}


@app.get("/tools")
async def list_available_tools():
    """获取可用工具列表"""
    registry = get_tool_registry()
    tools = [
        {"name": tool_def.name, "description": tool_def.description}
        for tool_def in registry.values()
    ]
    return {"tools": tools, "count": len(tools)}


def main():
    """启动 HTTP 包装器服务器"""
    import uvicorn

    # 防止任何库污染 stdout
    original_stdout = sys.stdout
    sys.stdout = sys.stderr

    logger.info(
        "Starting HTTP wrapper server on http://%s:%d", settings.HTTP_HOST, settings.HTTP_PORT
    )

    try:
        # log_config=None: 继承上面配置好的 logging
        uvicorn.run(
            "src.http_server:app",
            host=settings.HTTP_HOST,
            port=settings.HTTP_PORT,
            reload=False,
            log_config=None,
        )
    finally:
        sys.stdout = original_stdout


if __name__ == "__main__":
    main()
