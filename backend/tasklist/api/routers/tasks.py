"""Tasks API router for CRUD operations."""

import logging
from typing import List

from fastapi import APIRouter, Depends

from tasklist.dependencies import get_task_repository
from tasklist.schemas.tasks import TaskCreate, TaskResponse, TaskUpdate
from tasklist.services.db.tasks import TaskRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("", response_model=List[TaskResponse])
async def list_tasks(repository: TaskRepository = Depends(get_task_repository)):
    """
    Get all tasks of the authenticated user.

    Returns:
        Tasks ordered newest first.
    """
    tasks = (await repository.list_tasks()).unwrap()
    return [task.to_response() for task in tasks]


@router.post("", response_model=TaskResponse, status_code=201)
async def create_task(
    task_create: TaskCreate,
    repository: TaskRepository = Depends(get_task_repository),
):
    """
    Create a task. The title is trimmed and must not be blank.

    Raises:
        400 if the title is blank.
    """
    task = (await repository.create_task(task_create.title)).unwrap()
    return task.to_response()


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: str, repository: TaskRepository = Depends(get_task_repository)):
    """Get a task by ID."""
    task = (await repository.get_task(task_id)).unwrap()
    return task.to_response()


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    task_update: TaskUpdate,
    repository: TaskRepository = Depends(get_task_repository),
):
    """
    Rename a task.

    Raises:
        400 if the title is blank.
        404 if the task does not exist or belongs to someone else.
    """
    task = (await repository.update_task(task_id, task_update.title)).unwrap()
    return task.to_response()


@router.delete("/{task_id}", response_model=TaskResponse)
async def delete_task(task_id: str, repository: TaskRepository = Depends(get_task_repository)):
    """
    Delete a task.

    Returns:
        The deleted task's last state.

    Raises:
        404 if the task is already gone or belongs to someone else.
    """
    task = (await repository.delete_task(task_id)).unwrap()
    return task.to_response()
