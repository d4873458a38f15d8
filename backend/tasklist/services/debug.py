"""Troubleshooting helpers: session overview and bulk task cleanup."""

import logging
from datetime import datetime, timezone

from tasklist.schemas.tasks import DebugInfoResponse, DebugTasks, DebugUser
from tasklist.services.db.tasks import TaskRepository
from tasklist.services.errors import ErrorInfo, Result, classify_error

logger = logging.getLogger(__name__)


class DebugService:
    """Read-mostly diagnostics for the caller's session."""

    def __init__(self, repository: TaskRepository):
        self.repository = repository

    async def collect(self) -> DebugInfoResponse:
        """Gather user identity and task list; failures are reported, not raised."""
        try:
            remote_user = await self.repository.store.get_current_user()
            user = DebugUser(id=remote_user.id, email=remote_user.email, authenticated=True)
        except Exception as e:
            logger.warning(f"Debug info without user: {classify_error(e).message}")
            user = DebugUser()

        result = await self.repository.list_tasks()
        tasks = DebugTasks(
            count=len(result.data or []),
            data=[task.to_response() for task in result.data or []],
            error=result.error.message if result.error else None,
        )

        return DebugInfoResponse(
            user=user,
            tasks=tasks,
            timestamp=datetime.now(timezone.utc),
        )

    async def clear_all_tasks(self) -> Result[int]:
        """
        Delete every task of the caller, one at a time.

        Stops at the first failure.

        Returns:
            Result with the number of deleted tasks
        """
        listed = await self.repository.list_tasks()
        if listed.error:
            return Result.failure(listed.error)

        deleted = 0
        for task in listed.data:
            result = await self.repository.delete_task(task.id)
            if result.error:
                return Result.failure(
                    ErrorInfo(
                        error_type=result.error.error_type,
                        message=f"Failed to delete tasks: {result.error.message}",
                    )
                )
            deleted += 1

        logger.info(f"Cleared {deleted} tasks")
        return Result.success(deleted)
