# tests/conftest.py

from __future__ import annotations

import pytest

from tasklist.services.db.tasks import TaskRepository

from .fakes import OTHER_USER, USER, FakeRemoteStore, at, task_row



@pytest.fixture()
def store() -> FakeRemoteStore:
    """
    Remote store holding three tasks for USER (t1 10:00, t2 11:00, t3 12:00)
    and one task owned by OTHER_USER.
    """
    fake = FakeRemoteStore()
    fake.seed(
        task_row("t1", USER, "first", at(10)),
        task_row("t2", USER, "second", at(11)),
        task_row("t3", USER, "third", at(12)),
        task_row("x1", OTHER_USER, "not mine", at(13)),
    )
    return fake


@pytest.fixture()
def live_store(store: FakeRemoteStore) -> FakeRemoteStore:
    """Same data, but every write is echoed on the change stream."""
    store.emit_changes = True
    return store


@pytest.fixture()
def repository(store: FakeRemoteStore) -> TaskRepository:
    return TaskRepository(store)
