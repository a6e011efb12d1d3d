"""
Issue 自定义字段

- CustomFieldInput: 按字段类型区分的输入值，编码为 customField_<id> 表单对
- resolve_custom_fields: 把 {字段名: JSON 值} 按项目字段定义转换为 {CustomFieldId: CustomFieldInput}

编码规则:
- 多选列表 / 复选框: 每个选项 ID 重复一次 customField_<id>
- 其余类型: 单个 customField_<id>
- 带 "其他" 值时追加 customField_<id>_otherValue
"""

import datetime
import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from src.core.errors import CustomFieldError
from src.core.form import DEFAULT_DATE_FORMAT, EncodedPair, stringify
from src.core.identifiers import CustomFieldId, CustomFieldItemId
from src.schemas.backlog import CustomFieldDefinition

logger = logging.getLogger(__name__)


class CustomFieldType(IntEnum):
    TEXT = 1
    TEXT_AREA = 2
    NUMERIC = 3
    DATE = 4
    SINGLE_LIST = 5
    MULTIPLE_LIST = 6
    CHECK_BOX = 7
    RADIO = 8


_MULTI_VALUE_TYPES = (CustomFieldType.MULTIPLE_LIST, CustomFieldType.CHECK_BOX)


@dataclass(frozen=True)
class CustomFieldInput:
    type: CustomFieldType
    value: Any
    other_value: Optional[str] = None

    @classmethod
    def text(cls, value: str) -> "CustomFieldInput":
        return cls(CustomFieldType.TEXT, value)

    @classmethod
    def text_area(cls, value: str) -> "CustomFieldInput":
        return cls(CustomFieldType.TEXT_AREA, value)

    @classmethod
    def numeric(cls, value: float) -> "CustomFieldInput":
        return cls(CustomFieldType.NUMERIC, value)

    @classmethod
    def date(cls, value: datetime.date) -> "CustomFieldInput":
        return cls(CustomFieldType.DATE, value)

    @classmethod
    def single_list(
        cls, item_id: CustomFieldItemId, other_value: Optional[str] = None
    ) -> "CustomFieldInput":
        return cls(CustomFieldType.SINGLE_LIST, item_id, other_value)

    @classmethod
    def multiple_list(
        cls, item_ids: Iterable[CustomFieldItemId], other_value: Optional[str] = None
    ) -> "CustomFieldInput":
        return cls(CustomFieldType.MULTIPLE_LIST, tuple(item_ids), other_value)

    @classmethod
    def check_box(cls, item_ids: Iterable[CustomFieldItemId]) -> "CustomFieldInput":
        return cls(CustomFieldType.CHECK_BOX, tuple(item_ids))

    @classmethod
    def radio(
        cls, item_id: CustomFieldItemId, other_value: Optional[str] = None
    ) -> "CustomFieldInput":
        return cls(CustomFieldType.RADIO, item_id, other_value)

    def to_pairs(self, field_id: CustomFieldId) -> List[EncodedPair]:
        key = f"customField_{field_id}"
        if self.type in _MULTI_VALUE_TYPES:
            pairs = [(key, stringify(item)) for item in self.value]
        elif self.type is CustomFieldType.DATE:
            pairs = [(key, self.value.strftime(DEFAULT_DATE_FORMAT))]
        else:
            pairs = [(key, stringify(self.value))]

        if self.other_value is not None:
            pairs.append((f"{key}_otherValue", self.other_value))
        return pairs


def encode_custom_fields(
    custom_fields: Optional[Mapping[CustomFieldId, CustomFieldInput]],
) -> List[EncodedPair]:
    """按插入顺序编码全部自定义字段"""
    pairs: List[EncodedPair] = []
    for field_id, field_input in (custom_fields or {}).items():
        pairs.extend(field_input.to_pairs(field_id))
    return pairs


# =============================================================================
# 按字段名解析（MCP / CLI 输入）
# =============================================================================
def _find_item(definition: CustomFieldDefinition, item_name: str) -> CustomFieldItemId:
    for item in definition.items:
        if item.name == item_name:
            return CustomFieldItemId(item.id)
    available = ", ".join(f"'{i.name}'" for i in definition.items)
    raise CustomFieldError(
        f"Custom field '{definition.name}': option '{item_name}' not found. "
        f"Available options: {available}"
    )


def _parse_single(definition: CustomFieldDefinition, value: Any) -> Tuple[str, Optional[str]]:
    if isinstance(value, str):
        return value, None
    if isinstance(value, dict) and isinstance(value.get("name"), str):
        other = value.get("other")
        return value["name"], other if isinstance(other, str) else None
    raise CustomFieldError(
        f"Custom field '{definition.name}' expects a string or object with 'name' field"
    )


def _parse_multiple(
    definition: CustomFieldDefinition, value: Any
) -> Tuple[List[str], Optional[str]]:
    other = None
    if isinstance(value, dict):
        other = value.get("other") if isinstance(value.get("other"), str) else None
        value = value.get("items")
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise CustomFieldError(
            f"Custom field '{definition.name}' expects an array of strings"
        )
    return value, other


def _convert(definition: CustomFieldDefinition, value: Any) -> CustomFieldInput:
    name = definition.name
    try:
        field_type = CustomFieldType(definition.type_id)
    except ValueError:
        raise CustomFieldError(
            f"Custom field '{name}' has unsupported type {definition.type_id}"
        ) from None

    if field_type in (CustomFieldType.TEXT, CustomFieldType.TEXT_AREA):
        if not isinstance(value, str):
            raise CustomFieldError(f"Custom field '{name}' expects a string value")
        return CustomFieldInput(field_type, value)

    if field_type is CustomFieldType.NUMERIC:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise CustomFieldError(f"Custom field '{name}' expects a numeric value")
        return CustomFieldInput.numeric(float(value))

    if field_type is CustomFieldType.DATE:
        try:
            parsed = datetime.datetime.strptime(value, "%Y-%m-%d").date()
        except (TypeError, ValueError):
            raise CustomFieldError(
                f"Custom field '{name}' expects date in yyyy-MM-dd format"
            ) from None
        return CustomFieldInput.date(parsed)

    if field_type in (CustomFieldType.SINGLE_LIST, CustomFieldType.RADIO):
        item_name, other = _parse_single(definition, value)
        return CustomFieldInput(field_type, _find_item(definition, item_name), other)

    item_names, other = _parse_multiple(definition, value)
    item_ids = [_find_item(definition, n) for n in item_names]
    if field_type is CustomFieldType.CHECK_BOX:
        return CustomFieldInput.check_box(item_ids)
    return CustomFieldInput.multiple_list(item_ids, other)


# =============================================================================
# 命令行形式: "id:type:value[:other]"
# =============================================================================
_OPTION_TYPES = {
    "text": CustomFieldType.TEXT,
    "textarea": CustomFieldType.TEXT_AREA,
    "numeric": CustomFieldType.NUMERIC,
    "date": CustomFieldType.DATE,
    "single_list": CustomFieldType.SINGLE_LIST,
    "multiple_list": CustomFieldType.MULTIPLE_LIST,
    "checkbox": CustomFieldType.CHECK_BOX,
    "radio": CustomFieldType.RADIO,
}


def _item_ids(raw: str) -> List[CustomFieldItemId]:
    return [CustomFieldItemId.parse(part.strip()) for part in raw.split(",") if part.strip()]


def parse_custom_field_option(raw: str) -> Tuple[CustomFieldId, CustomFieldInput]:
    """
    解析命令行自定义字段参数

    格式: "id:type:value[:other]"，列表类型的 value 为逗号分隔的选项 ID，例如:
        "1:text:Sample text"
        "2:numeric:123.45"
        "3:date:2024-06-24"
        "4:single_list:100:Other description"
        "5:multiple_list:100,101"

    Raises:
        CustomFieldError: 格式 / 类型 / 取值不合法
    """
    parts = raw.split(":", 2)
    if len(parts) != 3:
        raise CustomFieldError(f"Custom field '{raw}' must be in 'id:type:value' format")
    raw_id, type_name, rest = parts

    field_type = _OPTION_TYPES.get(type_name)
    if field_type is None:
        valid = ", ".join(_OPTION_TYPES)
        raise CustomFieldError(f"Unknown custom field type '{type_name}'. Valid types: {valid}")

    try:
        field_id = CustomFieldId.parse(raw_id)
        if field_type in (CustomFieldType.TEXT, CustomFieldType.TEXT_AREA):
            # 文本可以包含 ':'
            return field_id, CustomFieldInput(field_type, rest)
        if field_type is CustomFieldType.NUMERIC:
            return field_id, CustomFieldInput.numeric(float(rest))
        if field_type is CustomFieldType.DATE:
            return field_id, CustomFieldInput.date(
                datetime.datetime.strptime(rest, "%Y-%m-%d").date()
            )

        value, _, other = rest.partition(":")
        other_value = other or None
        if field_type is CustomFieldType.CHECK_BOX:
            return field_id, CustomFieldInput.check_box(_item_ids(value))
        if field_type is CustomFieldType.MULTIPLE_LIST:
            return field_id, CustomFieldInput.multiple_list(_item_ids(value), other_value)
        return field_id, CustomFieldInput(
            field_type, CustomFieldItemId.parse(value), other_value
        )
    except ValueError as e:
        raise CustomFieldError(f"Invalid custom field '{raw}': {e}") from e


def resolve_custom_fields(
    definitions: List[CustomFieldDefinition], fields_by_name: Mapping[str, Any]
) -> Dict[CustomFieldId, CustomFieldInput]:
    """
    按字段名匹配项目自定义字段定义并转换取值

    Raises:
        CustomFieldError: 字段名不存在、取值类型不匹配或选项不存在
    """
    by_name = {d.name: d for d in definitions}
    resolved: Dict[CustomFieldId, CustomFieldInput] = {}
    for field_name, value in fields_by_name.items():
        definition = by_name.get(field_name)
        if definition is None:
            raise CustomFieldError(f"Custom field '{field_name}' not found in project")
        resolved[CustomFieldId(definition.id)] = _convert(definition, value)

    logger.debug("Resolved %d custom fields", len(resolved))
    return resolved
