import datetime

import pytest

from src.core.arguments import (
    parse_argument,
    parse_choice,
    parse_date,
    parse_many,
    parse_optional,
)
from src.core.errors import InvalidArgument
from src.core.identifiers import (
    DocumentId,
    IdOrKeyKind,
    IssueIdOrKey,
    ProjectIdOrKey,
    StatusId,
    UserId,
)
from src.providers.backlog.api.common import Order


def test_parse_argument_numeric_from_int_and_str():
    assert parse_argument("assignee_id", UserId, 5) == UserId(5)
    assert parse_argument("assignee_id", UserId, "5") == UserId(5)


def test_parse_argument_union():
    value = parse_argument("issue_id_or_key", IssueIdOrKey, "BLG-1")
    assert value.kind is IdOrKeyKind.KEY
    assert parse_argument("project_id_or_key", ProjectIdOrKey, 3).kind is IdOrKeyKind.ID


def test_invalid_argument_names_field_and_raw():
    with pytest.raises(InvalidArgument) as exc_info:
        parse_argument("issue_id_or_key", IssueIdOrKey, "BLG-09")
    assert str(exc_info.value) == "invalid issue_id_or_key: 'BLG-09'"
    assert exc_info.value.field == "issue_id_or_key"
    assert exc_info.value.raw == "BLG-09"


def test_zero_padded_overlong_argument_is_invalid_argument():
    raw = "0" * 5000 + "1"
    with pytest.raises(InvalidArgument) as exc_info:
        parse_argument("project_id_or_key", ProjectIdOrKey, raw)
    assert exc_info.value.field == "project_id_or_key"
    assert exc_info.value.raw == raw


@pytest.mark.parametrize("raw", [-1, "x", 1.5, None])
def test_invalid_numeric(raw):
    with pytest.raises(InvalidArgument):
        parse_argument("status_id", StatusId, raw)


def test_invalid_string_key_type():
    with pytest.raises(InvalidArgument) as exc_info:
        parse_argument("document_id", DocumentId, 123)
    assert str(exc_info.value) == "invalid document_id: '123'"


def test_parse_optional():
    assert parse_optional("assignee_id", UserId, None) is None
    assert parse_optional("assignee_id", UserId, "") is None
    assert parse_optional("assignee_id", UserId, "7") == UserId(7)


def test_parse_many():
    assert parse_many("status_ids", StatusId, None) is None
    assert parse_many("status_ids", StatusId, [1, "2"]) == [StatusId(1), StatusId(2)]
    with pytest.raises(InvalidArgument) as exc_info:
        parse_many("status_ids", StatusId, [1, "two"])
    assert str(exc_info.value) == "invalid status_ids: 'two'"


def test_parse_date():
    assert parse_date("due_date", "2024-06-24") == datetime.date(2024, 6, 24)
    assert parse_date("due_date", None) is None
    with pytest.raises(InvalidArgument) as exc_info:
        parse_date("due_date", "24/06/2024")
    assert str(exc_info.value) == "invalid due_date: '24/06/2024'"


def test_parse_choice():
    assert parse_choice("order", Order, "asc") is Order.ASC
    assert parse_choice("order", Order, None) is None
    with pytest.raises(InvalidArgument):
        parse_choice("order", Order, "up")
