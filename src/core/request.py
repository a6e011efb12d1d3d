"""
请求描述符

ApiRequest / UploadRequest / DownloadRequest 只描述一次调用（方法、路径、编码后的参数），
由 BacklogClient 负责执行。每个描述符构造一次、执行一次。
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Sequence, Tuple

from src.core.form import EncodedPair, encode


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"

    @property
    def has_body(self) -> bool:
        return self in (HttpMethod.POST, HttpMethod.PUT, HttpMethod.PATCH)


def encode_params(params: Any) -> Tuple[EncodedPair, ...]:
    """参数对象 -> 编码对；优先使用类型自身的 to_form()"""
    if params is None:
        return ()
    to_form = getattr(params, "to_form", None)
    pairs = to_form() if to_form is not None else encode(params)
    return tuple(pairs)


def _check_path(path: str) -> None:
    if not isinstance(path, str) or not path.startswith("/"):
        raise ValueError(f"Request path must be absolute, got {path!r}")


@dataclass(frozen=True)
class ApiRequest:
    """
    一次 API 调用：查询参数与表单参数二选一

    约定：无请求体的方法 (GET/DELETE) 填 query，有请求体的方法填 form。
    """

    method: HttpMethod
    path: str
    query: Tuple[EncodedPair, ...] = ()
    form: Tuple[EncodedPair, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "method", HttpMethod(self.method))
        object.__setattr__(self, "query", tuple(self.query))
        object.__setattr__(self, "form", tuple(self.form))
        _check_path(self.path)
        if self.query and self.form:
            raise ValueError(
                f"{self.method.value} {self.path}: a request carries either query or form pairs, not both"
            )

    @classmethod
    def of(cls, method: HttpMethod, path: str, params: Any = None) -> "ApiRequest":
        method = HttpMethod(method)
        pairs = encode_params(params)
        if method.has_body:
            return cls(method, path, form=pairs)
        return cls(method, path, query=pairs)

    @classmethod
    def get(cls, path: str, params: Any = None) -> "ApiRequest":
        return cls.of(HttpMethod.GET, path, params)

    @classmethod
    def post(cls, path: str, params: Any = None) -> "ApiRequest":
        return cls.of(HttpMethod.POST, path, params)

    @classmethod
    def patch(cls, path: str, params: Any = None) -> "ApiRequest":
        return cls.of(HttpMethod.PATCH, path, params)

    @classmethod
    def delete(cls, path: str, params: Any = None) -> "ApiRequest":
        return cls.of(HttpMethod.DELETE, path, params)


@dataclass(frozen=True)
class UploadRequest:
    """multipart 上传：本地文件 + 附加字段（附加字段同样经过编码引擎）"""

    path: str
    file_path: Path
    file_field: str = "file"
    fields: Tuple[EncodedPair, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "file_path", Path(self.file_path))
        object.__setattr__(self, "fields", tuple(self.fields))
        _check_path(self.path)

    @classmethod
    def of(
        cls, path: str, file_path: Path, params: Any = None, file_field: str = "file"
    ) -> "UploadRequest":
        return cls(path, file_path, file_field=file_field, fields=encode_params(params))


@dataclass(frozen=True)
class DownloadRequest:
    """下载：响应体按原始字节返回，而不是解析为 JSON"""

    path: str
    query: Tuple[EncodedPair, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "query", tuple(self.query))
        _check_path(self.path)

    @classmethod
    def of(cls, path: str, params: Any = None) -> "DownloadRequest":
        return cls(path, query=encode_params(params))


@dataclass(frozen=True)
class DownloadedFile:
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    def save(self, directory: Optional[Path] = None, filename: Optional[str] = None) -> Path:
        """写入本地文件，返回写入路径"""
        target = Path(directory or ".") / Path(filename or self.filename).name
        target.write_bytes(self.content)
        return target


def pairs_to_dict(pairs: Sequence[EncodedPair]) -> dict:
    """编码对 -> dict，重复 Key 合并为列表（用于日志与调试输出）"""
    merged: dict = {}
    for key, value in pairs:
        if key in merged:
            existing = merged[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                merged[key] = [existing, value]
        else:
            merged[key] = value
    return merged
