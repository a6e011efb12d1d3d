"""
Backlog 标识符类型 - 校验与歧义消解

所有标识符都只能通过构造获得，构造时即完成校验:
- NumericId: 数值 ID（按声明位宽校验范围，十进制规范化输出）
- StringKey: 受语法约束的字符串 Key（字符集 + 长度范围）
- IssueKey: 复合 Key，格式为 <ProjectKey>-<正整数>
- *IdOrKey: ID / Key 联合类型，从原始输入一次性解析，可能同时满足两种语法

使用示例:
    ProjectIdOrKey.parse("BLG")    # kind=KEY
    ProjectIdOrKey.parse("123")    # kind=EITHER，渲染为 "123"
    IssueKey.parse("BLG-9")
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Optional, Pattern, Type

from src.core.errors import (
    InvalidDocumentId,
    InvalidIdentifier,
    InvalidIssueIdOrKey,
    InvalidIssueKey,
    InvalidProjectIdOrKey,
    InvalidProjectKey,
    InvalidRepositoryIdOrName,
    InvalidRepositoryName,
    InvalidSpaceKey,
    ValidationError,
)

_DECIMAL_RE = re.compile(r"[0-9]+")


def parse_unsigned(raw: Any, bits: int, non_zero: bool = False) -> Optional[int]:
    """
    按严格十进制语法解析无符号整数

    只接受 ASCII 数字（不接受符号、空白、下划线），数值必须能用 bits 位表示。
    前导零计入长度，总位数超过 2**bits 的十进制位数即视为越界。

    Returns:
        解析结果；不满足语法或越界时返回 None
    """
    if not isinstance(raw, str) or not _DECIMAL_RE.fullmatch(raw):
        return None
    # 先按长度拦截超长输入（含前导零），避免对巨大数字串做 int() 转换
    if len(raw) > len(str(1 << bits)):
        return None
    value = int(raw)
    if value >= 1 << bits:
        return None
    if non_zero and value == 0:
        return None
    return value


# =============================================================================
# 数值 ID
# =============================================================================
@dataclass(frozen=True, order=True)
class NumericId:
    """Unsigned integer identifier with a declared bit width."""

    value: int

    BITS: ClassVar[int] = 32
    NON_ZERO: ClassVar[bool] = False

    def __post_init__(self):
        value = self.value
        if (
            isinstance(value, bool)
            or not isinstance(value, int)
            or value < 0
            or value >= 1 << self.BITS
            or (self.NON_ZERO and value == 0)
        ):
            raise InvalidIdentifier(value, label=type(self).__name__)

    @classmethod
    def parse(cls, raw: str):
        value = parse_unsigned(raw, cls.BITS, cls.NON_ZERO)
        if value is None:
            raise InvalidIdentifier(raw, label=cls.__name__)
        return cls(value)

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)


class ProjectId(NumericId):
    pass


class UserId(NumericId):
    pass


class IssueId(NumericId):
    pass


class SpaceId(NumericId):
    pass


class MilestoneId(NumericId):
    pass


class CategoryId(NumericId):
    pass


class IssueTypeId(NumericId):
    pass


class StatusId(NumericId):
    pass


class PriorityId(NumericId):
    pass


class ResolutionId(NumericId):
    pass


class CommentId(NumericId):
    pass


class AttachmentId(NumericId):
    """Issue attachment ID"""


class WikiId(NumericId):
    pass


class WikiAttachmentId(NumericId):
    pass


class SharedFileId(NumericId):
    pass


class CustomFieldId(NumericId):
    pass


class CustomFieldItemId(NumericId):
    pass


class RepositoryId(NumericId):
    pass


class PullRequestId(NumericId):
    pass


class NotificationId(NumericId):
    pass


class StarId(NumericId):
    pass


class TeamId(NumericId):
    pass


class WebhookId(NumericId):
    pass


class PullRequestNumber(NumericId):
    BITS = 64


class SvnRevision(NumericId):
    BITS = 64


# =============================================================================
# 字符串 Key
# =============================================================================
@dataclass(frozen=True)
class StringKey:
    """String identifier constrained by a fixed grammar and length bounds."""

    value: str

    PATTERN: ClassVar[Pattern[str]]
    MIN_LENGTH: ClassVar[int] = 1
    MAX_LENGTH: ClassVar[int]
    ERROR: ClassVar[Type[ValidationError]] = ValidationError

    def __post_init__(self):
        value = self.value
        # 长度检查与正则中的量词重复，但以常量为准
        if (
            not isinstance(value, str)
            or len(value) < self.MIN_LENGTH
            or len(value) > self.MAX_LENGTH
            or not self.PATTERN.fullmatch(value)
        ):
            raise self.ERROR(value)

    @classmethod
    def parse(cls, raw: str):
        return cls(raw)

    def __str__(self) -> str:
        return self.value


class SpaceKey(StringKey):
    """
    Space 标识，即 Space URL 的子域名部分（如 https://myspace.backlog.com）。
    3-10 个字符，仅允许字母、数字和连字符。
    """

    PATTERN = re.compile(r"[a-zA-Z0-9-]{3,10}")
    MIN_LENGTH = 3
    MAX_LENGTH = 10
    ERROR = InvalidSpaceKey


class ProjectKey(StringKey):
    """1-25 个字符，仅允许大写字母、数字和下划线（区分大小写）。"""

    PATTERN = re.compile(r"[_A-Z0-9]{1,25}")
    MAX_LENGTH = 25
    ERROR = InvalidProjectKey


class RepositoryName(StringKey):
    """Git 仓库名: 首字符为字母或数字，其余可含 _ . -，总长 1-100。"""

    PATTERN = re.compile(r"[a-zA-Z0-9][a-zA-Z0-9_.-]{0,99}")
    MAX_LENGTH = 100
    ERROR = InvalidRepositoryName


class DocumentId(StringKey):
    """32 位小写十六进制字符串"""

    PATTERN = re.compile(r"[0-9a-f]{32}")
    MIN_LENGTH = 32
    MAX_LENGTH = 32
    ERROR = InvalidDocumentId


# =============================================================================
# 复合 Key
# =============================================================================
_ISSUE_KEY_RE = re.compile(r"([_A-Z0-9]{1,25})-([1-9][0-9]*)")


@dataclass(frozen=True)
class IssueKey:
    """
    Issue Key，在 Space 内唯一。

    格式为 ProjectKey + "-" + 正整数，数字部分不允许前导零，且必须在 u32 范围内。
    """

    project_key: ProjectKey
    key_id: int

    def __post_init__(self):
        key_id = self.key_id
        if (
            not isinstance(self.project_key, ProjectKey)
            or isinstance(key_id, bool)
            or not isinstance(key_id, int)
            or not 0 < key_id < 1 << 32
        ):
            raise InvalidIssueKey(f"{self.project_key}-{key_id}")

    @classmethod
    def parse(cls, raw: str) -> "IssueKey":
        match = _ISSUE_KEY_RE.fullmatch(raw) if isinstance(raw, str) else None
        if match is None:
            raise InvalidIssueKey(raw)
        # 数字部分在构造前做越界检查，超出 u32 视为非法而不是截断
        key_id = parse_unsigned(match.group(2), 32, non_zero=True)
        if key_id is None:
            raise InvalidIssueKey(raw)
        return cls(ProjectKey(match.group(1)), key_id)

    def __str__(self) -> str:
        return f"{self.project_key}-{self.key_id}"


# =============================================================================
# ID / Key 联合类型
# =============================================================================
class IdOrKeyKind(str, Enum):
    ID = "id"
    KEY = "key"
    # 原始输入同时满足数值 ID 与 Key 语法
    EITHER = "either"


_SLOTS_BY_KIND = {
    IdOrKeyKind.ID: (True, False),
    IdOrKeyKind.KEY: (False, True),
    IdOrKeyKind.EITHER: (True, True),
}


@dataclass(frozen=True)
class IdOrKey:
    """
    Tagged id-or-key value: a discriminant plus up to two payload slots.

    Whenever the numeric slot is populated (ID or EITHER) the value renders as
    the numeric id.
    """

    kind: IdOrKeyKind
    id: Optional[NumericId] = None
    key: Optional[Any] = None

    ID_TYPE: ClassVar[Type[NumericId]]
    KEY_TYPE: ClassVar[type]
    ERROR: ClassVar[Type[ValidationError]]

    def __post_init__(self):
        object.__setattr__(self, "kind", IdOrKeyKind(self.kind))
        expected = _SLOTS_BY_KIND[self.kind]
        if (self.id is not None, self.key is not None) != expected:
            raise TypeError(
                f"{type(self).__name__}({self.kind.value}) requires id/key slots {expected}"
            )
        if self.id is not None and not isinstance(self.id, self.ID_TYPE):
            raise TypeError(f"id must be {self.ID_TYPE.__name__}, got {self.id!r}")
        if self.id is not None and self.id.value == 0:
            # 联合类型的数值形态遵循非零语法
            raise self.ERROR(self.id.value)
        if self.key is not None and not isinstance(self.key, self.KEY_TYPE):
            raise TypeError(f"key must be {self.KEY_TYPE.__name__}, got {self.key!r}")

    @classmethod
    def parse(cls, raw: str):
        """
        分别尝试非零数值语法与 Key 语法:
        - 两者都成功 -> EITHER
        - 仅一个成功 -> 对应的单一形态
        - 都失败 -> ERROR(raw)
        """
        id_value = parse_unsigned(raw, cls.ID_TYPE.BITS, non_zero=True)
        try:
            key = cls.KEY_TYPE.parse(raw)
        except ValidationError:
            key = None

        if id_value is not None and key is not None:
            return cls(IdOrKeyKind.EITHER, cls.ID_TYPE(id_value), key)
        if id_value is not None:
            return cls(IdOrKeyKind.ID, id=cls.ID_TYPE(id_value))
        if key is not None:
            return cls(IdOrKeyKind.KEY, key=key)
        raise cls.ERROR(raw)

    @classmethod
    def of(cls, value: Any):
        """从已校验的 ID / Key 实例、整数或原始字符串构造"""
        if isinstance(value, cls):
            return value
        if isinstance(value, cls.ID_TYPE):
            return cls(IdOrKeyKind.ID, id=value)
        if isinstance(value, cls.KEY_TYPE):
            return cls(IdOrKeyKind.KEY, key=value)
        if isinstance(value, int) and not isinstance(value, bool):
            if value <= 0:
                raise cls.ERROR(value)
            try:
                return cls(IdOrKeyKind.ID, id=cls.ID_TYPE(value))
            except ValidationError:
                raise cls.ERROR(value) from None
        if isinstance(value, str):
            return cls.parse(value)
        raise cls.ERROR(value)

    @property
    def is_ambiguous(self) -> bool:
        return self.kind is IdOrKeyKind.EITHER

    def __str__(self) -> str:
        if self.id is not None:
            return str(self.id)
        return str(self.key)


class ProjectIdOrKey(IdOrKey):
    ID_TYPE = ProjectId
    KEY_TYPE = ProjectKey
    ERROR = InvalidProjectIdOrKey


class IssueIdOrKey(IdOrKey):
    ID_TYPE = IssueId
    KEY_TYPE = IssueKey
    ERROR = InvalidIssueIdOrKey


class RepositoryIdOrName(IdOrKey):
    ID_TYPE = RepositoryId
    KEY_TYPE = RepositoryName
    ERROR = InvalidRepositoryIdOrName
