# tests/fakes.py

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

from tasklist.exceptions import NotAuthenticatedError, NotFoundError
from tasklist.services.remote_store import (
    ALL_CHANGES,
    ChangeEvent,
    ChangeType,
    RemoteUser,
    Subscription,
)

BASE_TIME = datetime(2020, 1, 1, 10, 0, tzinfo=timezone.utc)

USER = "user-u"
OTHER_USER = "user-v"


def at(hour: int, minute: int = 0) -> str:
    """ISO timestamp on the fixed test day, as PostgREST returns it."""
    return BASE_TIME.replace(hour=hour, minute=minute).isoformat()


def task_row(task_id: str, owner: str, title: str, created_at: str, **extra: Any) -> dict:
    row = {
        "id": task_id,
        "user_id": owner,
        "task_title": title,
        "created_at": created_at,
        "updated_at": None,
    }
    row.update(extra)
    return row


async def settle(rounds: int = 5) -> None:
    """Let queued events reach the controller's consumer task."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeRemoteStore:
    """
    In-memory RemoteStore.

    - Row-level security: writes only touch the current user's rows
    - Records every call for "no remote call" assertions
    - ``emit_changes=True`` mirrors each write onto open subscriptions
    - ``fail_next[op] = exc`` makes the next call of ``op`` raise
    """

    def __init__(
        self,
        user: RemoteUser | None = RemoteUser(id=USER, email="u@example.com"),
        emit_changes: bool = False,
    ) -> None:
        self.user = user
        self.emit_changes = emit_changes
        self.rows: dict[str, dict] = {}
        self.calls: list[str] = []
        self.subscriptions: list[Subscription] = []
        self.unsubscribe_calls = 0
        self.fail_next: dict[str, Exception] = {}
        self._next_id = 100
        self._clock = BASE_TIME + timedelta(hours=6)

    # -- helpers ---------------------------------------------------------

    def seed(self, *rows: dict) -> None:
        for row in rows:
            self.rows[str(row["id"])] = dict(row)

    def emit(self, event: ChangeEvent) -> None:
        for subscription in self.subscriptions:
            subscription.deliver(event)

    def _record(self, op: str) -> None:
        self.calls.append(op)
        error = self.fail_next.pop(op, None)
        if error is not None:
            raise error

    def _owned(self, record_id: str) -> dict:
        row = self.rows.get(str(record_id))
        if row is None or self.user is None or row["user_id"] != self.user.id:
            raise NotFoundError(f"Row {record_id} in tasks")
        return row

    def _tick(self) -> str:
        self._clock += timedelta(minutes=1)
        return self._clock.isoformat()

    # -- RemoteStore -----------------------------------------------------

    async def get_current_user(self) -> RemoteUser:
        self._record("get_current_user")
        if self.user is None:
            raise NotAuthenticatedError("No authenticated user found")
        return self.user

    async def query(self, table, filters=None, order_by=None, order_desc=False, limit=None):
        self._record("query")
        visible = [
            dict(row)
            for row in self.rows.values()
            if self.user is not None and row["user_id"] == self.user.id
        ]
        for key, value in (filters or {}).items():
            visible = [row for row in visible if str(row.get(key)) == str(value)]
        if order_by:
            visible.sort(key=lambda row: row[order_by], reverse=order_desc)
        if limit:
            visible = visible[:limit]
        return visible

    async def insert(self, table, record):
        self._record("insert")
        self._next_id += 1
        created_at = self._tick()
        row = {"id": str(self._next_id), "created_at": created_at, "updated_at": created_at}
        row.update(record)
        self.rows[row["id"]] = row
        if self.emit_changes:
            self.emit(ChangeEvent(ChangeType.INSERT, new=dict(row)))
        return dict(row)

    async def update(self, table, record_id, patch):
        self._record("update")
        row = self._owned(record_id)
        for key, value in patch.items():
            row[key] = value.isoformat() if isinstance(value, datetime) else value
        if self.emit_changes:
            self.emit(ChangeEvent(ChangeType.UPDATE, new=dict(row), old={"id": row["id"]}))
        return dict(row)

    async def delete(self, table, record_id):
        self._record("delete")
        row = self._owned(record_id)
        del self.rows[str(record_id)]
        if self.emit_changes:
            # Without REPLICA IDENTITY FULL only the key is replicated
            self.emit(ChangeEvent(ChangeType.DELETE, old={"id": row["id"]}))
        return dict(row)

    async def subscribe(self, table, event_mask=ALL_CHANGES):
        self._record("subscribe")
        subscription = Subscription(table, event_mask)
        self.subscriptions.append(subscription)
        return subscription

    async def unsubscribe(self, subscription):
        self.calls.append("unsubscribe")
        self.unsubscribe_calls += 1
        if subscription in self.subscriptions:
            self.subscriptions.remove(subscription)
        subscription.close()
