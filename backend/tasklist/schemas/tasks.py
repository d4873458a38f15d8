"""Task Pydantic schemas for rows, requests and responses."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Column names of the remote "tasks" table
OWNER_COLUMN = "user_id"
TITLE_COLUMN = "task_title"


class Task(BaseModel):
    """
    A task as stored remotely.

    Validates directly from a table row (``user_id`` / ``task_title`` columns)
    and from field names. Immutable: patches produce new instances.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    owner_id: str = Field(alias=OWNER_COLUMN)
    title: str = Field(alias=TITLE_COLUMN)
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="before")
    @classmethod
    def _fill_updated_at(cls, data: Any) -> Any:
        # updated_at equals created_at until the first update
        if isinstance(data, dict) and data.get("updated_at") is None:
            data = {**data, "updated_at": data.get("created_at")}
        return data

    @field_validator("id", "owner_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: Any) -> Any:
        # The store may hand back integer or UUID keys
        if value is None or isinstance(value, str):
            return value
        return str(value)

    def to_response(self) -> "TaskResponse":
        return TaskResponse(**self.model_dump())


class TaskCreate(BaseModel):
    """Request model for creating a task."""
    title: str


class TaskUpdate(BaseModel):
    """Request model for renaming a task."""
    title: str


class TaskResponse(BaseModel):
    """Response model for a task."""
    id: str
    owner_id: str
    title: str
    created_at: datetime
    updated_at: datetime


class ClearTasksResponse(BaseModel):
    """Response model for bulk task deletion."""
    deleted: int
    message: str


class DebugUser(BaseModel):
    id: Optional[str] = None
    email: Optional[str] = None
    authenticated: bool = False


class DebugTasks(BaseModel):
    count: int = 0
    data: List[TaskResponse] = []
    error: Optional[str] = None


class DebugInfoResponse(BaseModel):
    """Snapshot of the caller's session for troubleshooting."""
    user: DebugUser
    tasks: DebugTasks
    connections: int = 0
    timestamp: datetime
