"""Debug API router: session overview and bulk cleanup."""

import logging

from fastapi import APIRouter, Depends

from tasklist.dependencies import get_task_repository
from tasklist.schemas.tasks import ClearTasksResponse, DebugInfoResponse
from tasklist.services.db.tasks import TaskRepository
from tasklist.services.debug import DebugService
from tasklist.services.realtime import connection_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/debug", tags=["debug"])


def get_debug_service(repository: TaskRepository = Depends(get_task_repository)) -> DebugService:
    return DebugService(repository)


@router.get("", response_model=DebugInfoResponse)
async def get_debug_info(service: DebugService = Depends(get_debug_service)):
    """User identity, task list and live connection count for the caller."""
    info = await service.collect()
    if info.user.id:
        info.connections = connection_manager.get_connection_count(info.user.id)
    return info


@router.delete("/tasks", response_model=ClearTasksResponse)
async def clear_all_tasks(service: DebugService = Depends(get_debug_service)):
    """
    Delete ALL tasks of the caller. This cannot be undone.

    Raises:
        The error of the first deletion that fails.
    """
    deleted = (await service.clear_all_tasks()).unwrap()
    if deleted == 0:
        return ClearTasksResponse(deleted=0, message="No tasks to delete")
    return ClearTasksResponse(deleted=deleted, message=f"Deleted {deleted} tasks")
