"""
外部输入（CLI 参数、MCP 工具参数）-> 已校验的标识符

所有解析失败统一转换为 InvalidArgument，错误信息中带上字段名与原始输入。
"""

import datetime
from typing import Any, Callable, Iterable, List, Optional, TypeVar

from src.core.errors import InvalidArgument, ValidationError
from src.core.identifiers import IdOrKey, NumericId

T = TypeVar("T")


def identifier_parser(cls: type) -> Callable[[Any], Any]:
    """按类型选择构造方式：字符串走 parse()，其余直接构造"""
    if issubclass(cls, IdOrKey):
        return cls.of

    def _parse(raw: Any):
        if isinstance(raw, str):
            return cls.parse(raw)
        if issubclass(cls, NumericId):
            return cls(raw)
        raise getattr(cls, "ERROR", ValidationError)(raw)

    return _parse


def parse_argument(field: str, cls: type, raw: Any) -> Any:
    try:
        return identifier_parser(cls)(raw)
    except ValidationError as e:
        raise InvalidArgument(field, raw) from e


def parse_optional(field: str, cls: type, raw: Any) -> Optional[Any]:
    if raw is None or raw == "":
        return None
    return parse_argument(field, cls, raw)


def parse_many(field: str, cls: type, raws: Optional[Iterable[Any]]) -> Optional[List[Any]]:
    if raws is None:
        return None
    return [parse_argument(field, cls, raw) for raw in raws]


def parse_date(field: str, raw: Optional[str]) -> Optional[datetime.date]:
    """yyyy-MM-dd -> date"""
    if raw is None or raw == "":
        return None
    try:
        return datetime.datetime.strptime(raw, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise InvalidArgument(field, raw) from None


def parse_choice(field: str, enum_cls: type, raw: Optional[str]) -> Optional[Any]:
    if raw is None or raw == "":
        return None
    try:
        return enum_cls(raw)
    except ValueError:
        raise InvalidArgument(field, raw) from None
