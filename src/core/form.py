"""
表单 / 查询参数编码

参数类型是普通的 dataclass，通过 form_field() 在字段上声明编码规则:
- name: 覆盖目标 Key（不再做 camelCase 转换）
- array: 集合字段必须显式标记，编码为 key[]=v1&key[]=v2
- skip: 永不编码
- date_format: 日期字段的格式（默认 %Y-%m-%d）

@form_params 在类定义时推导一次 FormSchema 并注册，之后所有实例共用。

使用示例:
    @form_params
    @dataclass(frozen=True, kw_only=True)
    class AddCommentParams:
        issue_id: IssueId
        content: str
        notified_user_ids: Optional[List[UserId]] = form_field(
            name="notifiedUserId", array=True, default=None
        )

    AddCommentParams(...).to_form()
    # [("issueId", "1"), ("content", "Hello"), ("notifiedUserId[]", "2"), ...]
"""

import collections.abc
import dataclasses
import datetime
import logging
import threading
import types
import typing
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from src.core.errors import SchemaError

logger = logging.getLogger(__name__)

EncodedPair = Tuple[str, str]

DEFAULT_DATE_FORMAT = "%Y-%m-%d"

_METADATA_KEY = "form"


class FieldKind(str, Enum):
    SCALAR = "scalar"
    OPTIONAL_SCALAR = "optional_scalar"
    COLLECTION = "collection"
    OPTIONAL_COLLECTION = "optional_collection"
    DATE = "date"
    OPTIONAL_DATE = "optional_date"

    @property
    def is_collection(self) -> bool:
        return self in (FieldKind.COLLECTION, FieldKind.OPTIONAL_COLLECTION)

    @property
    def is_date(self) -> bool:
        return self in (FieldKind.DATE, FieldKind.OPTIONAL_DATE)


@dataclass(frozen=True)
class FieldOptions:
    """form_field() 写入 dataclass 字段 metadata 的声明"""

    name: Optional[str] = None
    array: bool = False
    skip: bool = False
    date_format: Optional[str] = None


@dataclass(frozen=True)
class FieldDescriptor:
    """单个字段的编码规则；skip 字段的 kind 为 None"""

    name: str
    key: str
    kind: Optional[FieldKind]
    date_format: Optional[str] = None
    skip: bool = False


@dataclass(frozen=True)
class FormSchema:
    owner: str
    fields: Tuple[FieldDescriptor, ...]

    def field(self, name: str) -> FieldDescriptor:
        for descriptor in self.fields:
            if descriptor.name == name:
                return descriptor
        raise KeyError(name)

    @property
    def keys(self) -> List[str]:
        """所有会被编码的目标 Key（按声明顺序）"""
        return [f.key for f in self.fields if not f.skip]


def form_field(
    *,
    name: Optional[str] = None,
    array: bool = False,
    skip: bool = False,
    date_format: Optional[str] = None,
    default: Any = dataclasses.MISSING,
    default_factory: Any = dataclasses.MISSING,
) -> Any:
    """声明字段的编码规则，其余行为同 dataclasses.field()"""
    options = FieldOptions(name=name, array=array, skip=skip, date_format=date_format)
    return dataclasses.field(
        default=default,
        default_factory=default_factory,
        metadata={_METADATA_KEY: options},
    )


def snake_to_camel(name: str) -> str:
    """user_id -> userId, notified_user_ids -> notifiedUserIds"""
    segments = [s for s in name.split("_") if s]
    if not segments:
        return name
    head, rest = segments[0], segments[1:]
    return head.lower() + "".join(s[:1].upper() + s[1:] for s in rest)


# =============================================================================
# Schema 推导
# =============================================================================
def _unwrap_optional(tp: Any) -> Tuple[Any, bool]:
    """Optional[X] / X | None -> (X, True)"""
    origin = typing.get_origin(tp)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(tp) if a is not type(None)]
        optional = len(args) != len(typing.get_args(tp))
        if len(args) == 1:
            return args[0], optional
        return typing.Union[tuple(args)], optional
    return tp, False


def _runtime_class(tp: Any) -> Any:
    return typing.get_origin(tp) or tp


def _is_collection(tp: Any) -> bool:
    cls = _runtime_class(tp)
    if not isinstance(cls, type) or issubclass(cls, (str, bytes, bytearray)):
        return False
    return issubclass(cls, collections.abc.Collection)


def _is_mapping(tp: Any) -> bool:
    cls = _runtime_class(tp)
    return isinstance(cls, type) and issubclass(cls, collections.abc.Mapping)


def _is_date(tp: Any) -> bool:
    cls = _runtime_class(tp)
    return isinstance(cls, type) and issubclass(cls, datetime.date)


def _classify(owner: str, field_name: str, tp: Any, options: FieldOptions) -> FieldKind:
    inner, optional = _unwrap_optional(tp)

    if typing.get_origin(inner) is typing.Union:
        members = typing.get_args(inner)
        if any(_is_collection(m) or _is_date(m) for m in members):
            raise SchemaError(owner, field_name, "union of collection/date types is not encodable")
        if options.array:
            raise SchemaError(owner, field_name, "array marker on a non-collection field")
        if options.date_format is not None:
            raise SchemaError(owner, field_name, "date_format on a non-date field")
        return FieldKind.OPTIONAL_SCALAR if optional else FieldKind.SCALAR

    if _is_mapping(inner):
        raise SchemaError(owner, field_name, "mapping fields cannot be form-encoded, mark them skip")

    if _is_collection(inner):
        if not options.array:
            raise SchemaError(owner, field_name, "collection field requires array=True")
        if options.date_format is not None:
            raise SchemaError(owner, field_name, "date_format on a non-date field")
        return FieldKind.OPTIONAL_COLLECTION if optional else FieldKind.COLLECTION

    if options.array:
        raise SchemaError(owner, field_name, "array marker on a non-collection field")

    if _is_date(inner):
        return FieldKind.OPTIONAL_DATE if optional else FieldKind.DATE

    if options.date_format is not None:
        raise SchemaError(owner, field_name, "date_format on a non-date field")
    return FieldKind.OPTIONAL_SCALAR if optional else FieldKind.SCALAR


def build_schema(cls: type) -> FormSchema:
    """
    对参数类型做一次反射，生成不可变的 FormSchema

    Raises:
        SchemaError: 类型不是 dataclass、注解无法解析，或字段声明不合法
    """
    owner = cls.__name__
    if not dataclasses.is_dataclass(cls):
        raise SchemaError(owner, "<class>", "form parameters must be a dataclass")

    try:
        hints = typing.get_type_hints(cls)
    except NameError as e:
        raise SchemaError(owner, "<annotations>", str(e)) from e

    descriptors = []
    for f in dataclasses.fields(cls):
        options = f.metadata.get(_METADATA_KEY, FieldOptions())
        key = options.name if options.name is not None else snake_to_camel(f.name)
        if options.skip:
            descriptors.append(FieldDescriptor(name=f.name, key=key, kind=None, skip=True))
            continue

        kind = _classify(owner, f.name, hints.get(f.name, Any), options)
        date_format = None
        if kind.is_date:
            date_format = options.date_format or DEFAULT_DATE_FORMAT
        descriptors.append(
            FieldDescriptor(name=f.name, key=key, kind=kind, date_format=date_format)
        )

    schema = FormSchema(owner=owner, fields=tuple(descriptors))
    logger.debug("Derived form schema for %s: keys=%s", owner, schema.keys)
    return schema


# 进程级 Schema 注册表：每个类型只写入一次，之后只读
_schemas: Dict[type, FormSchema] = {}
_schemas_lock = threading.Lock()


def form_schema(cls: type) -> FormSchema:
    """获取参数类型的 FormSchema（未注册时推导并注册，双重检查锁定）"""
    schema = _schemas.get(cls)
    if schema is not None:
        return schema

    with _schemas_lock:
        schema = _schemas.get(cls)
        if schema is None:
            schema = build_schema(cls)
            _schemas[cls] = schema
    return schema


def _to_form(self) -> List[EncodedPair]:
    return encode(self)


def form_params(cls):
    """
    类装饰器：在类定义时推导并注册 FormSchema，附加 to_form() 方法

    必须放在 @dataclass 之上。类自身定义了 to_form() 时保留原实现
    （例如需要在引擎输出后追加自定义字段）。
    """
    form_schema(cls)
    if "to_form" not in cls.__dict__:
        cls.to_form = _to_form
    return cls


# =============================================================================
# 编码
# =============================================================================
def stringify(value: Any) -> str:
    """单个值的线上字符串形式"""
    if isinstance(value, Enum):
        return stringify(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, datetime.date):
        return value.isoformat()
    return str(value)


def encode(params: Any) -> List[EncodedPair]:
    """
    参数对象 -> 有序 (key, value) 列表

    按字段声明顺序输出；集合字段每个元素一对，Key 追加 "[]"；
    None / 空集合不输出；skip 字段永不输出。
    """
    schema = form_schema(type(params))
    pairs: List[EncodedPair] = []

    for descriptor in schema.fields:
        if descriptor.skip:
            continue
        value = getattr(params, descriptor.name)
        kind = descriptor.kind

        if kind is FieldKind.SCALAR:
            pairs.append((descriptor.key, stringify(value)))
        elif kind is FieldKind.OPTIONAL_SCALAR:
            if value is not None:
                pairs.append((descriptor.key, stringify(value)))
        elif kind.is_collection:
            if value:
                array_key = f"{descriptor.key}[]"
                pairs.extend((array_key, stringify(item)) for item in value)
        elif kind.is_date:
            if value is not None:
                pairs.append((descriptor.key, value.strftime(descriptor.date_format)))

    return pairs
