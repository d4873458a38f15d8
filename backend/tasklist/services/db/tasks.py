"""
Task repository over the RemoteStore protocol.

Every operation returns a Result and never raises: validation problems,
auth failures, zero-row writes and store rejections all come back as
``Result.error`` with a human-readable message.
"""

import logging
import os
from datetime import datetime, timezone
from typing import List, Optional

from tasklist.exceptions import InvalidArgumentError, NotFoundError
from tasklist.schemas.tasks import OWNER_COLUMN, TITLE_COLUMN, Task
from tasklist.services.errors import Result, handle_error
from tasklist.services.remote_store import RemoteStore, RemoteUser

logger = logging.getLogger(__name__)

TASKS_TABLE = os.environ.get("TASKS_TABLE", "tasks")


def _require_title(title: Optional[str]) -> str:
    """Return the trimmed title, or raise if it is blank."""
    if not isinstance(title, str) or not title.strip():
        raise InvalidArgumentError("Task title is required")
    return title.strip()


def _require_id(task_id: Optional[str]) -> str:
    # Keys arrive as strings, or as integers from bigint primary keys
    if isinstance(task_id, bool) or not isinstance(task_id, (str, int)):
        raise InvalidArgumentError("Task ID is required")
    if not str(task_id).strip():
        raise InvalidArgumentError("Task ID is required")
    return str(task_id)


def sort_newest_first(tasks: List[Task]) -> List[Task]:
    """Order by created_at descending; equal timestamps keep arrival order."""
    return sorted(tasks, key=lambda task: task.created_at, reverse=True)


class TaskRepository:
    """
    Task CRUD scoped to the authenticated user.

    Ownership on writes is enforced by the store's row-level security:
    an update or delete of someone else's task affects zero rows and is
    reported as NOT_FOUND.
    """

    table_name = TASKS_TABLE

    def __init__(self, store: RemoteStore):
        self.store = store

    async def _current_user(self) -> RemoteUser:
        return await self.store.get_current_user()

    async def list_tasks(self) -> Result[List[Task]]:
        """Fetch the current user's tasks, newest first."""
        user_id = None
        try:
            user = await self._current_user()
            user_id = user.id
            logger.debug(f"Fetching tasks for user {user_id}")

            rows = await self.store.query(
                self.table_name,
                filters={OWNER_COLUMN: user_id},
                order_by="created_at",
                order_desc=True,
            )
            tasks = sort_newest_first([Task.model_validate(row) for row in rows])

            logger.debug(f"Loaded {len(tasks)} tasks")
            return Result.success(tasks)
        except Exception as e:
            return handle_error(e, "list tasks", {"user_id": user_id})

    async def create_task(self, title: str) -> Result[Task]:
        """Create a task owned by the current user. The title is trimmed."""
        user_id = None
        try:
            trimmed = _require_title(title)
            user = await self._current_user()
            user_id = user.id

            row = await self.store.insert(
                self.table_name,
                {TITLE_COLUMN: trimmed, OWNER_COLUMN: user_id},
            )
            task = Task.model_validate(row)

            logger.info(f"Created task {task.id}", extra={"user_id": user_id})
            return Result.success(task)
        except Exception as e:
            return handle_error(e, "create task", {"user_id": user_id})

    async def update_task(self, task_id: str, title: str) -> Result[Task]:
        """Rename a task and stamp ``updated_at``."""
        try:
            record_id = _require_id(task_id)
            trimmed = _require_title(title)

            try:
                row = await self.store.update(
                    self.table_name,
                    record_id,
                    {
                        TITLE_COLUMN: trimmed,
                        "updated_at": datetime.now(timezone.utc),
                    },
                )
            except NotFoundError:
                raise NotFoundError("Task", action="update")

            task = Task.model_validate(row)
            logger.info(f"Updated task {task.id}")
            return Result.success(task)
        except Exception as e:
            return handle_error(e, "update task", {"task_id": task_id})

    async def delete_task(self, task_id: str) -> Result[Task]:
        """Delete a task; returns its last known state."""
        try:
            record_id = _require_id(task_id)

            try:
                row = await self.store.delete(self.table_name, record_id)
            except NotFoundError:
                raise NotFoundError("Task", action="delete")

            task = Task.model_validate(row)
            logger.info(f"Deleted task {task.id}")
            return Result.success(task)
        except Exception as e:
            return handle_error(e, "delete task", {"task_id": task_id})

    async def get_task(self, task_id: str) -> Result[Task]:
        """Fetch one task by id."""
        try:
            record_id = _require_id(task_id)

            rows = await self.store.query(
                self.table_name, filters={"id": record_id}, limit=1
            )
            if not rows:
                raise NotFoundError("Task")

            return Result.success(Task.model_validate(rows[0]))
        except Exception as e:
            return handle_error(e, "get task", {"task_id": task_id})
