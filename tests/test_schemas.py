# tests/test_schemas.py

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from tasklist.core.logging_config import CsvFormatter, SessionUserFilter, resolve_level, session_user
from tasklist.schemas.tasks import Task

from .fakes import USER, at, task_row


def test_task_from_row_columns() -> None:
    task = Task.model_validate(task_row(42, USER, "buy milk", at(10)))

    assert task.id == "42"
    assert task.owner_id == USER
    assert task.title == "buy milk"
    assert task.updated_at == task.created_at


def test_task_from_field_names() -> None:
    task = Task(
        id="t1",
        owner_id=USER,
        title="buy milk",
        created_at=at(10),
        updated_at=at(11),
    )

    assert task.updated_at > task.created_at
    assert task.to_response().model_dump()["owner_id"] == USER


def test_task_is_immutable() -> None:
    task = Task.model_validate(task_row("t1", USER, "buy milk", at(10)))

    with pytest.raises(ValidationError):
        task.title = "changed"


def test_task_requires_title_and_timestamp() -> None:
    with pytest.raises(ValidationError):
        Task.model_validate({"id": "t1", "user_id": USER})


def test_csv_formatter_quotes_fields() -> None:
    record = logging.LogRecord(
        "tasklist.services.db.tasks", logging.WARNING, __file__, 1,
        "create task failed: title, again", None, None,
    )
    record.user_id = USER
    record.error = 'bad "title"'

    line = CsvFormatter().format(record)

    assert line.endswith(f'"create task failed: title, again",{USER},"bad ""title"""')
    assert ",WARNING,tasklist.services.db.tasks," in line


@pytest.mark.parametrize(
    ("level", "expected"),
    [("debug", logging.DEBUG), ("WARNING", logging.WARNING), ("loud", logging.INFO), (10, 10)],
)
def test_resolve_level(level, expected) -> None:
    assert resolve_level(level) == expected


def test_session_user_fills_missing_user_id() -> None:
    record = logging.LogRecord("tasklist", logging.INFO, __file__, 1, "snapshot loaded", None, None)
    token = session_user.set(USER)
    try:
        assert SessionUserFilter().filter(record)
    finally:
        session_user.reset(token)

    assert record.user_id == USER
