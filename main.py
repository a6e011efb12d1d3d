"""
Backlog Agent 入口点（backlog-agent）

- MCP Server: Stdio 模式，运行在主进程，stdout 专用于 MCP 协议
- HTTP Server: FastAPI 包装器，运行在 spawn 子进程（HTTP_ENABLED=false 时不启动）

子进程总是以 spawn 方式创建，console script 入口同样适用。
"""

import logging
import multiprocessing
import sys
from multiprocessing.context import SpawnContext
from multiprocessing.process import BaseProcess
from multiprocessing.synchronize import Event
from typing import Optional

from src.core.config import settings
from src.http_server import main as run_http_server
from src.mcp_server import main as run_mcp_server

logger = logging.getLogger(__name__)


def start_http_service(ready_event: Event | None = None):
    """
    子进程目标函数：启动 HTTP 包装器

    Args:
        ready_event: 可选的 Event 对象，用于通知主进程服务已就绪
    """
    try:
        # uvicorn.run 是阻塞的，只能在启动前标记就绪（不保证端口绑定成功）
        if ready_event is not None:
            ready_event.set()
        run_http_server()
    except Exception as e:
        # stdout 是 MCP 的通信通道
        sys.stderr.write(f"HTTP Server process failed: {e}\n")


def spawn_http_process(ctx: SpawnContext) -> Optional[BaseProcess]:
    """按配置启动 HTTP 子进程，并等待其就绪"""
    if not settings.HTTP_ENABLED:
        logger.info("HTTP wrapper disabled, running MCP server only")
        return None

    http_ready = ctx.Event()
    process = ctx.Process(
        target=start_http_service,
        args=(http_ready,),
        name=f"Backlog-HTTP-{settings.HTTP_PORT}",
        daemon=True,
    )
    process.start()

    timeout = settings.HTTP_STARTUP_TIMEOUT
    if not http_ready.wait(timeout=timeout):
        sys.stderr.write(f"警告: HTTP Server 未能在 {timeout} 秒内启动，继续启动 MCP Server\n")
    if not process.is_alive():
        sys.stderr.write("警告: HTTP Server 进程已退出，可能启动失败\n")
    return process


def main():
    """主入口"""
    if settings.base_url is None:
        # 不阻止启动：工具调用会返回 ERR_CONFIG
        sys.stderr.write("警告: 未配置 BACKLOG_BASE_URL 或 BACKLOG_SPACE_KEY\n")

    # spawn 避免子进程继承客户端单例的锁
    http_process = spawn_http_process(multiprocessing.get_context("spawn"))

    try:
        run_mcp_server()
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.critical("MCP Server crashed: %s", e, exc_info=True)
    finally:
        if http_process is not None and http_process.is_alive():
            http_process.terminate()
            http_process.join(timeout=1.0)


if __name__ == "__main__":
    main()
