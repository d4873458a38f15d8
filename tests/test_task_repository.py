# tests/test_task_repository.py

from __future__ import annotations

import pytest
from postgrest.exceptions import APIError

from tasklist.exceptions import RemoteError
from tasklist.services.db.tasks import TaskRepository
from tasklist.services.errors import ErrorCode

from .fakes import OTHER_USER, USER, FakeRemoteStore, at, task_row


@pytest.mark.asyncio
async def test_list_tasks_returns_newest_first(repository: TaskRepository) -> None:
    result = await repository.list_tasks()

    assert result.ok
    assert [t.id for t in result.data] == ["t3", "t2", "t1"]
    assert all(t.owner_id == USER for t in result.data)


@pytest.mark.asyncio
async def test_list_tasks_keeps_arrival_order_for_equal_timestamps() -> None:
    store = FakeRemoteStore()
    store.seed(
        task_row("a", USER, "a", at(9)),
        task_row("b", USER, "b", at(10)),
        task_row("c", USER, "c", at(10)),
    )

    result = await TaskRepository(store).list_tasks()

    # The fake sorts stably, so b stays ahead of c
    assert [t.id for t in result.data] == ["b", "c", "a"]


@pytest.mark.asyncio
async def test_list_tasks_requires_authentication() -> None:
    store = FakeRemoteStore(user=None)

    result = await TaskRepository(store).list_tasks()

    assert result.data is None
    assert result.error.error_type is ErrorCode.NOT_AUTHENTICATED
    assert "query" not in store.calls


@pytest.mark.asyncio
@pytest.mark.parametrize("title", ["buy milk", "  buy milk", "buy milk \t", "\n buy milk  "])
async def test_create_task_persists_trimmed_title(
    repository: TaskRepository, store: FakeRemoteStore, title: str
) -> None:
    result = await repository.create_task(title)

    assert result.ok
    task = result.data
    assert task.title == "buy milk"
    assert task.id
    assert task.created_at is not None
    assert task.owner_id == USER
    assert store.rows[task.id]["task_title"] == "buy milk"


@pytest.mark.asyncio
@pytest.mark.parametrize("title", ["", "   ", None, 5, ["buy milk"]])
async def test_create_task_rejects_blank_title_without_remote_call(title) -> None:
    store = FakeRemoteStore()

    result = await TaskRepository(store).create_task(title)

    assert result.error.error_type is ErrorCode.INVALID_ARGUMENT
    assert result.error.message == "Task title is required"
    assert store.calls == []


@pytest.mark.asyncio
async def test_create_task_passes_remote_message_through(
    repository: TaskRepository, store: FakeRemoteStore
) -> None:
    store.fail_next["insert"] = RemoteError("Supabase", "new row violates row-level security policy")

    result = await repository.create_task("buy milk")

    assert result.error.error_type is ErrorCode.REMOTE_ERROR
    assert result.error.message == "new row violates row-level security policy"


@pytest.mark.asyncio
async def test_postgrest_errors_become_remote_errors(
    repository: TaskRepository, store: FakeRemoteStore
) -> None:
    store.fail_next["query"] = APIError({"message": "relation does not exist", "code": "42P01"})

    result = await repository.list_tasks()

    assert result.error.error_type is ErrorCode.REMOTE_ERROR
    assert result.error.message == "relation does not exist"
    assert result.error.remote_code == "42P01"


@pytest.mark.asyncio
async def test_unexpected_exceptions_become_unknown_errors(
    repository: TaskRepository, store: FakeRemoteStore
) -> None:
    store.fail_next["query"] = RuntimeError("boom")

    result = await repository.list_tasks()

    assert result.error.error_type is ErrorCode.UNKNOWN_ERROR
    assert result.error.message == "RuntimeError: boom"


@pytest.mark.asyncio
async def test_update_task_sets_title_and_updated_at(repository: TaskRepository) -> None:
    result = await repository.update_task("t1", "  new title ")

    assert result.ok
    assert result.data.title == "new title"
    assert result.data.updated_at > result.data.created_at


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("task_id", "title", "message"),
    [
        (None, "x", "Task ID is required"),
        ("", "x", "Task ID is required"),
        ("t1", "   ", "Task title is required"),
        ("t1", 5, "Task title is required"),
        ({"id": "t1"}, "x", "Task ID is required"),
    ],
)
async def test_update_task_validates_before_remote_call(task_id, title, message) -> None:
    store = FakeRemoteStore()

    result = await TaskRepository(store).update_task(task_id, title)

    assert result.error.error_type is ErrorCode.INVALID_ARGUMENT
    assert result.error.message == message
    assert store.calls == []


@pytest.mark.asyncio
async def test_update_task_owned_by_someone_else_is_not_found(
    repository: TaskRepository, store: FakeRemoteStore
) -> None:
    result = await repository.update_task("x1", "hijack")

    assert result.error.error_type is ErrorCode.NOT_FOUND
    assert result.error.message == (
        "Task not found or you do not have permission to update it"
    )
    assert store.rows["x1"]["task_title"] == "not mine"
    assert store.rows["x1"]["user_id"] == OTHER_USER


@pytest.mark.asyncio
async def test_delete_task_returns_last_state(
    repository: TaskRepository, store: FakeRemoteStore
) -> None:
    result = await repository.delete_task("t2")

    assert result.ok
    assert result.data.id == "t2"
    assert result.data.title == "second"
    assert "t2" not in store.rows


@pytest.mark.asyncio
async def test_repeated_delete_reports_not_found(repository: TaskRepository) -> None:
    first = await repository.delete_task("t2")
    second = await repository.delete_task("t2")

    assert first.ok
    assert second.error.error_type is ErrorCode.NOT_FOUND
    assert "delete" in second.error.message


@pytest.mark.asyncio
async def test_delete_task_requires_id() -> None:
    store = FakeRemoteStore()

    result = await TaskRepository(store).delete_task("")

    assert result.error.error_type is ErrorCode.INVALID_ARGUMENT
    assert store.calls == []


@pytest.mark.asyncio
async def test_get_task(repository: TaskRepository) -> None:
    found = await repository.get_task("t3")
    missing = await repository.get_task("nope")

    assert found.data.title == "third"
    assert missing.error.error_type is ErrorCode.NOT_FOUND
    assert missing.error.message == "Task not found"
