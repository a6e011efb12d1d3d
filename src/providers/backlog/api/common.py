from enum import Enum
from typing import Any, List, Type, TypeVar

from src.core.errors import UnexpectedResponseError
from src.schemas.backlog import BacklogModel

M = TypeVar("M", bound=BacklogModel)


class Order(str, Enum):
    ASC = "asc"
    DESC = "desc"


def parse_model(model: Type[M], data: Any) -> M:
    if not isinstance(data, dict):
        raise UnexpectedResponseError(200, f"expected JSON object, got {type(data).__name__}")
    return model.model_validate(data)


def parse_list(model: Type[M], data: Any) -> List[M]:
    if not isinstance(data, list):
        raise UnexpectedResponseError(200, f"expected JSON array, got {type(data).__name__}")
    return [model.model_validate(item) for item in data]
