"""FastAPI dependencies: caller token, per-request remote store and repository."""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tasklist.exceptions import NotAuthenticatedError
from tasklist.services.db.supabase_store import SupabaseRemoteStore
from tasklist.services.db.tasks import TaskRepository
from tasklist.services.remote_store import RemoteStore
from tasklist.supabase_client import get_async_supabase_client

security = HTTPBearer(auto_error=False)

# Cookie names (must match auth router)
COOKIE_NAME_ACCESS = "sb_access_token"
COOKIE_NAME_REFRESH = "sb_refresh_token"


def get_access_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Read the caller's JWT.
    Prioritizes the HttpOnly cookie, falls back to the Authorization header.
    """
    access_token = request.cookies.get(COOKIE_NAME_ACCESS)
    if access_token:
        return access_token

    if credentials and credentials.credentials:
        return credentials.credentials

    raise NotAuthenticatedError("Not authenticated")


async def get_task_store(access_token: str = Depends(get_access_token)) -> RemoteStore:
    """Remote store acting as the caller (row-level security applies)."""
    client = await get_async_supabase_client(access_token)
    return SupabaseRemoteStore(client, access_token)


def get_task_repository(store: RemoteStore = Depends(get_task_store)) -> TaskRepository:
    """Create TaskRepository bound to the caller's store."""
    return TaskRepository(store)
