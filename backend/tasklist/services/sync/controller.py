"""
Task sync controller.

Owns the authoritative local snapshot of the session user's task list and
keeps it consistent under two inputs:

1. Direct results of repository calls (initial load, refresh, local delete)
2. The live change stream of the tasks table

States:
    UNINITIALIZED --start--> SYNCED | ERROR
    SYNCED --refresh/patch--> SYNCED | ERROR
    ERROR --retry--> SYNCED | ERROR
    any --teardown--> DETACHED (terminal)
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional, Tuple

from pydantic import ValidationError

from tasklist.schemas.tasks import OWNER_COLUMN, Task
from tasklist.services.db.tasks import TASKS_TABLE, TaskRepository
from tasklist.services.errors import Result, classify_error
from tasklist.services.remote_store import (
    ALL_CHANGES,
    ChangeEvent,
    ChangeType,
    RemoteStore,
    Subscription,
)

logger = logging.getLogger(__name__)

Snapshot = Tuple[Task, ...]
SnapshotListener = Callable[["TaskSyncController"], None]


class SyncState(str, Enum):
    """Controller lifecycle states."""
    UNINITIALIZED = "uninitialized"
    SYNCED = "synced"
    ERROR = "error"
    DETACHED = "detached"


class TaskSyncController:
    """
    Single writer of the session's task snapshot.

    The snapshot is an immutable tuple, newest first, swapped as a whole on
    every change. Readers call ``snapshot`` or register a listener.

    Event rules (applied only while SYNCED, in delivery order):
    - events for another owner are dropped
    - INSERT prepends; an id already present is replaced in place
    - UPDATE replaces in place; unknown id is a no-op
    - DELETE removes; unknown id is a no-op

    Local create/update do not patch the snapshot, the change stream does.
    A confirmed local delete removes the entry immediately; the DELETE event
    that follows finds nothing to remove.

    Events that arrive before the first load completes, or while in ERROR,
    are discarded, not buffered. A row committed after the list query read
    the table but before SYNCED is therefore missing from the snapshot until
    the next refresh() or retry(), not just for a moment.

    Usage:
        async with TaskSyncController(store) as controller:
            controller.add_listener(render)
            await controller.create_task("buy milk")
    """

    def __init__(self, store: RemoteStore, repository: Optional[TaskRepository] = None):
        self._store = store
        self._repository = repository or TaskRepository(store)
        self._state = SyncState.UNINITIALIZED
        self._snapshot: Snapshot = ()
        self._error: Optional[str] = None
        self._user_id: Optional[str] = None
        self._subscription: Optional[Subscription] = None
        self._consumer: Optional[asyncio.Task] = None
        self._listeners: List[SnapshotListener] = []

    # =========================================================================
    # Read-only view
    # =========================================================================

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def snapshot(self) -> Snapshot:
        """Current task list (empty while in ERROR)."""
        return self._snapshot

    @property
    def error(self) -> Optional[str]:
        """Message of the last failed load, if in ERROR."""
        return self._error

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def repository(self) -> TaskRepository:
        return self._repository

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        Register a callback run after every snapshot or state change.

        Returns:
            A function that removes the listener (safe to call twice)
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Snapshot listener failed: {e}", exc_info=True)

    def _replace(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        self._notify()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> SyncState:
        """First activation: resolve the user, subscribe, load the list."""
        if self._state is not SyncState.UNINITIALIZED:
            logger.warning(f"TaskSyncController already started (state={self._state.value})")
            return self._state

        await self._activate()
        return self._state

    async def refresh(self) -> SyncState:
        """
        Reload the full list, replacing the snapshot wholesale.

        Events applied while the load was in flight are not merged:
        the last fetch wins.
        """
        if self._state is SyncState.DETACHED:
            logger.warning("refresh() on a detached TaskSyncController")
            return self._state

        if self._subscription is None:
            # Activation never completed (auth or subscribe failed)
            await self._activate()
        else:
            await self._load()
        return self._state

    async def retry(self) -> SyncState:
        """Re-attempt activation after an error."""
        return await self.refresh()

    async def _activate(self) -> None:
        try:
            if self._user_id is None:
                user = await self._store.get_current_user()
                self._user_id = user.id

            if self._state is SyncState.DETACHED:
                return

            if self._subscription is None:
                subscription = await self._store.subscribe(TASKS_TABLE, ALL_CHANGES)
                if self._state is SyncState.DETACHED:
                    # Torn down while subscribing
                    await self._store.unsubscribe(subscription)
                    return
                self._subscription = subscription
                self._consumer = asyncio.create_task(self._consume(subscription))
        except Exception as e:
            if self._state is not SyncState.DETACHED:
                self._fail(classify_error(e).message)
            return

        await self._load()

    async def _load(self) -> None:
        result = await self._repository.list_tasks()

        if self._state is SyncState.DETACHED:
            return

        if result.error:
            self._fail(result.error.message)
            return

        self._state = SyncState.SYNCED
        self._error = None
        logger.debug(f"Snapshot loaded: {len(result.data)} tasks for user {self._user_id}")
        self._replace(tuple(result.data))

    def _fail(self, message: str) -> None:
        logger.warning(f"Task sync failed: {message}", extra={"user_id": self._user_id or ""})
        self._state = SyncState.ERROR
        self._error = message
        self._replace(())

    async def teardown(self) -> None:
        """Detach: stop consuming events and release the subscription once."""
        if self._state is SyncState.DETACHED:
            return

        self._state = SyncState.DETACHED

        consumer, self._consumer = self._consumer, None
        if consumer is not None and consumer is not asyncio.current_task():
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass

        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            try:
                await self._store.unsubscribe(subscription)
            except Exception as e:
                logger.error(f"Error releasing task subscription: {e}")

        self._listeners.clear()
        logger.debug(f"TaskSyncController detached for user {self._user_id}")

    async def __aenter__(self) -> "TaskSyncController":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.teardown()

    # =========================================================================
    # Event stream
    # =========================================================================

    async def _consume(self, subscription: Subscription) -> None:
        async for event in subscription:
            if self._state is SyncState.DETACHED:
                break
            self.apply_event(event)

    def apply_event(self, event: ChangeEvent) -> bool:
        """
        Patch the snapshot with one change event.

        Never raises: malformed, foreign or unmatched events are dropped,
        and so is every event received outside SYNCED (see class docstring).

        Returns:
            True if the snapshot changed
        """
        if self._state is not SyncState.SYNCED:
            logger.debug(f"Dropping {event.event_type.value} event in state {self._state.value}")
            return False

        try:
            if event.event_type is ChangeType.DELETE:
                patched = self._apply_delete(event)
            else:
                patched = self._apply_upsert(event)
        except ValidationError as e:
            logger.warning(f"Dropping malformed {event.event_type.value} event: {e}")
            return False
        except Exception as e:
            logger.error(f"Error applying {event.event_type.value} event: {e}", exc_info=True)
            return False

        if patched is None:
            return False

        self._replace(patched)
        return True

    def _is_foreign(self, owner_id) -> bool:
        return str(owner_id) != self._user_id

    def _apply_upsert(self, event: ChangeEvent) -> Optional[Snapshot]:
        if not event.new:
            logger.warning(f"{event.event_type.value} event without a new record")
            return None

        task = Task.model_validate(event.new)
        if self._is_foreign(task.owner_id):
            return None

        index = self._index_of(task.id)

        if event.event_type is ChangeType.INSERT:
            if index is None:
                return (task,) + self._snapshot
            # Already observed through a load: collapse the duplicate
            return self._snapshot[:index] + (task,) + self._snapshot[index + 1:]

        if index is None:
            # Update for a row never observed locally
            return None
        return self._snapshot[:index] + (task,) + self._snapshot[index + 1:]

    def _apply_delete(self, event: ChangeEvent) -> Optional[Snapshot]:
        record = event.record
        task_id = record.get("id")
        if task_id is None:
            logger.warning("DELETE event without a primary key")
            return None

        # Old records may carry only the primary key; every snapshot entry
        # already belongs to the session user, so a bare id is safe to remove.
        owner_id = record.get(OWNER_COLUMN)
        if owner_id is not None and self._is_foreign(owner_id):
            return None

        return self._without(str(task_id))

    def _index_of(self, task_id: str) -> Optional[int]:
        for index, task in enumerate(self._snapshot):
            if task.id == task_id:
                return index
        return None

    def _without(self, task_id: str) -> Optional[Snapshot]:
        index = self._index_of(task_id)
        if index is None:
            return None
        return self._snapshot[:index] + self._snapshot[index + 1:]

    # =========================================================================
    # Direct operations
    # =========================================================================

    async def create_task(self, title: str) -> Result[Task]:
        """Create a task; the INSERT event adds it to the snapshot."""
        return await self._repository.create_task(title)

    async def update_task(self, task_id: str, title: str) -> Result[Task]:
        """Rename a task; the UPDATE event patches the snapshot."""
        return await self._repository.update_task(task_id, title)

    async def get_task(self, task_id: str) -> Result[Task]:
        return await self._repository.get_task(task_id)

    async def delete_task(self, task_id: str) -> Result[Task]:
        """Delete a task and drop it from the snapshot once confirmed."""
        result = await self._repository.delete_task(task_id)

        if result.ok and self._state is SyncState.SYNCED:
            patched = self._without(result.data.id)
            if patched is not None:
                self._replace(patched)

        return result
