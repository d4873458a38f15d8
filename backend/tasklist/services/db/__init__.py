"""Database service modules."""

from .supabase_store import SupabaseRemoteStore, parse_change_payload
from .tasks import TASKS_TABLE, TaskRepository

__all__ = [
    "SupabaseRemoteStore",
    "parse_change_payload",
    "TASKS_TABLE",
    "TaskRepository",
]
