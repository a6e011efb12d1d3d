import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import unquote, urlencode

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.core.auth import BacklogAuth
from src.core.config import settings
from src.core.errors import (
    BacklogApiError,
    ConfigurationError,
    FileReadError,
    UnexpectedResponseError,
)
from src.core.request import (
    ApiRequest,
    DownloadedFile,
    DownloadRequest,
    UploadRequest,
    pairs_to_dict,
)

logger = logging.getLogger(__name__)

_backlog_client = None
_backlog_client_lock = threading.Lock()  # 线程安全锁

# 定义可重试的异常类型
RETRYABLE_EXCEPTIONS = (
    httpx.ConnectError,
    httpx.TimeoutException,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.ConnectTimeout,
)

DEFAULT_FILENAME = "downloaded_file"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

_FILENAME_STAR_RE = re.compile(r"filename\*=UTF-8''([^;]+)", re.IGNORECASE)
_FILENAME_RE = re.compile(r'filename="([^"]*)"|filename=([^;]+)', re.IGNORECASE)


def _should_retry_response(response: httpx.Response) -> bool:
    """检查响应是否需要重试（5xx 服务端错误）"""
    return response.status_code >= 500


class RetryableHTTPError(Exception):
    """可重试的 HTTP 错误"""

    def __init__(self, response: httpx.Response):
        self.response = response
        super().__init__(f"HTTP {response.status_code}: {response.text[:200]}")


@dataclass(frozen=True)
class RateLimitInfo:
    """最近一次响应的 X-RateLimit-* 头"""

    limit: Optional[int]
    remaining: Optional[int]
    reset: Optional[int]

    @classmethod
    def from_headers(cls, headers: httpx.Headers) -> Optional["RateLimitInfo"]:
        def _int(name: str) -> Optional[int]:
            value = headers.get(name)
            return int(value) if value is not None and value.isdigit() else None

        info = cls(
            limit=_int("X-RateLimit-Limit"),
            remaining=_int("X-RateLimit-Remaining"),
            reset=_int("X-RateLimit-Reset"),
        )
        if info.limit is None and info.remaining is None and info.reset is None:
            return None
        return info


def parse_content_disposition(value: Optional[str]) -> str:
    """从 Content-Disposition 中提取文件名，支持 filename="x" 与 filename*=UTF-8''x"""
    if not value:
        return DEFAULT_FILENAME
    match = _FILENAME_STAR_RE.search(value)
    if match:
        return unquote(match.group(1).strip())
    match = _FILENAME_RE.search(value)
    if match:
        name = (match.group(1) or match.group(2) or "").strip()
        if name:
            return name
    return DEFAULT_FILENAME


def raise_for_backlog_error(response: httpx.Response) -> None:
    """
    非 2xx 响应 -> 异常

    Raises:
        BacklogApiError: 响应体为 {"errors": [...]}
        UnexpectedResponseError: 其他无法解析的错误响应
    """
    if response.is_success:
        return
    try:
        payload = response.json()
    except ValueError:
        payload = None

    errors = payload.get("errors") if isinstance(payload, dict) else None
    if isinstance(errors, list):
        raise BacklogApiError(response.status_code, errors)
    raise UnexpectedResponseError(response.status_code, response.text)


class BacklogClient:
    """
    Backlog API 异步客户端

    特性:
    - 执行 ApiRequest / UploadRequest / DownloadRequest 描述符
    - 认证: apiKey 查询参数或 Bearer token
    - 自动重试机制 (网络错误、超时、5xx 错误)
    - 指数退避策略
    - 记录最近一次响应的速率限制信息
    """

    # 重试配置
    MAX_RETRIES = 3
    RETRY_MIN_WAIT = 1  # 最小等待时间（秒）
    RETRY_MAX_WAIT = 10  # 最大等待时间（秒）

    def __init__(
        self,
        base_url: Optional[str] = None,
        auth: Optional[httpx.Auth] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url or settings.base_url
        if not self.base_url:
            raise ConfigurationError("BACKLOG_BASE_URL or BACKLOG_SPACE_KEY must be configured")
        logger.info("Initializing BacklogClient with base_url=%s", self.base_url)
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=auth or BacklogAuth.from_settings(),
            timeout=httpx.Timeout(timeout or settings.HTTP_TIMEOUT),
            trust_env=False,  # 禁用环境变量代理
        )
        self.rate_limit: Optional[RateLimitInfo] = None
        logger.debug("BacklogClient initialized successfully")

    def _get_retry_decorator(self):
        """获取重试装饰器配置"""
        return retry(
            stop=stop_after_attempt(self.MAX_RETRIES),
            wait=wait_exponential(
                multiplier=1, min=self.RETRY_MIN_WAIT, max=self.RETRY_MAX_WAIT
            ),
            retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS + (RetryableHTTPError,)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        """
        带重试的请求方法；返回最终响应（含 4xx），由调用方映射错误

        重试耗尽后仍为 5xx 时返回最后一次响应。
        """

        @self._get_retry_decorator()
        async def _do_request():
            logger.debug("Making %s request to %s", method, path)
            response = await self.client.request(method, path, **kwargs)
            logger.debug("Response status: %d from %s", response.status_code, path)

            # 5xx 错误触发重试
            if _should_retry_response(response):
                logger.warning(
                    "Received %d from %s, will retry...", response.status_code, path
                )
                raise RetryableHTTPError(response)
            return response

        try:
            response = await _do_request()
        except RetryableHTTPError as e:
            response = e.response

        self.rate_limit = RateLimitInfo.from_headers(response.headers) or self.rate_limit

        if response.status_code >= 400:
            logger.error(
                "HTTP error %d from %s %s: %s",
                response.status_code,
                method,
                path,
                response.text[:200],
            )
        else:
            logger.info(
                "Request successful: %s %s -> %d", method, path, response.status_code
            )
        return response

    async def _send_request(self, request: ApiRequest) -> httpx.Response:
        if request.form:
            logger.debug("%s payload: %s", request.method.value, pairs_to_dict(request.form))
            return await self._send(
                request.method.value,
                request.path,
                content=urlencode(request.form),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        return await self._send(
            request.method.value, request.path, params=list(request.query) or None
        )

    async def execute(self, request: ApiRequest) -> Any:
        """执行请求并返回解析后的 JSON（204 时返回 None）"""
        response = await self._send_request(request)
        raise_for_backlog_error(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def execute_no_content(self, request: ApiRequest) -> None:
        """执行预期返回 204 No Content 的请求"""
        response = await self._send_request(request)
        raise_for_backlog_error(response)
        if response.status_code != 204:
            raise UnexpectedResponseError(response.status_code, response.text)

    async def download(self, request: DownloadRequest) -> DownloadedFile:
        """下载文件，返回原始字节与元数据"""
        response = await self._send("GET", request.path, params=list(request.query) or None)
        raise_for_backlog_error(response)
        downloaded = DownloadedFile(
            filename=parse_content_disposition(response.headers.get("Content-Disposition")),
            content_type=response.headers.get("Content-Type", DEFAULT_CONTENT_TYPE),
            content=response.content,
        )
        logger.info(
            "Downloaded %s (%s, %d bytes)",
            downloaded.filename,
            downloaded.content_type,
            downloaded.size,
        )
        return downloaded

    async def upload(self, request: UploadRequest) -> Any:
        """multipart 上传本地文件"""
        try:
            content = request.file_path.read_bytes()
        except OSError as e:
            raise FileReadError(str(request.file_path), str(e)) from e

        filename = request.file_path.name or "attachment"
        logger.info("Uploading %s (%d bytes) to %s", filename, len(content), request.path)
        response = await self._send(
            "POST",
            request.path,
            files={request.file_field: (filename, content)},
            data=pairs_to_dict(request.fields) or None,
        )
        raise_for_backlog_error(response)
        return response.json()

    async def close(self):
        """关闭客户端连接"""
        logger.info("Closing BacklogClient connection")
        await self.client.aclose()
        logger.debug("BacklogClient connection closed")


def get_backlog_client() -> BacklogClient:
    """
    获取全局单例客户端（线程安全）

    使用双重检查锁定模式，防止多线程/多协程并发时重复实例化。
    """
    global _backlog_client

    # 快速路径：已初始化则直接返回
    if _backlog_client is not None:
        return _backlog_client

    # 慢路径：使用锁保护初始化
    with _backlog_client_lock:
        if _backlog_client is not None:
            return _backlog_client

        logger.debug("Creating new BacklogClient singleton instance")
        _backlog_client = BacklogClient()

    return _backlog_client


async def close_backlog_client():
    """关闭并清除全局单例客户端；未创建时不做任何事"""
    global _backlog_client

    with _backlog_client_lock:
        client, _backlog_client = _backlog_client, None

    if client is not None:
        await client.close()
