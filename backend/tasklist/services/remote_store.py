"""
Remote store abstraction.

Decouples the task repository and the sync controller from the hosted
backend (Supabase, or an in-memory double in tests).
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    """Row change types delivered by the store's event stream."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


ALL_CHANGES: FrozenSet[ChangeType] = frozenset(ChangeType)


@dataclass(frozen=True)
class ChangeEvent:
    """
    One committed row change.

    ``new`` is set for INSERT/UPDATE, ``old`` for DELETE (and for UPDATE when
    the table replicates full rows). ``old`` may only hold the primary key.
    """

    event_type: ChangeType
    new: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = None

    @property
    def record(self) -> Dict[str, Any]:
        """The row the event is about: ``new`` if present, else ``old``."""
        return self.new or self.old or {}


@dataclass(frozen=True)
class RemoteUser:
    """Identity of the authenticated session."""
    id: str
    email: Optional[str] = None


_CLOSED = object()


class Subscription:
    """
    Cancellable handle over a table's change stream.

    Events are queued in delivery order and consumed with ``async for``.
    Iteration ends once the subscription is closed; a closed subscription
    cannot be reopened, create a new one instead.

    Usage:
        subscription = await store.subscribe("tasks", ALL_CHANGES)
        async for event in subscription:
            apply(event)
        ...
        await store.unsubscribe(subscription)
    """

    def __init__(self, table: str, event_mask: FrozenSet[ChangeType] = ALL_CHANGES):
        self.table = table
        self.event_mask = frozenset(event_mask)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def deliver(self, event: ChangeEvent) -> None:
        """Queue an event. Called by the store from its realtime callback."""
        if self._closed:
            logger.debug(f"Dropping {event.event_type.value} on closed {self.table} subscription")
            return
        if event.event_type not in self.event_mask:
            return
        self._queue.put_nowait(event)

    def close(self) -> None:
        """End the stream. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ChangeEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            # Keep the sentinel for any other consumer
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item


@runtime_checkable
class RemoteStore(Protocol):
    """
    Narrow interface onto the hosted database and its realtime service.

    Implementations raise tasklist.exceptions errors:
    NotAuthenticatedError, NotFoundError, RemoteError.
    """

    async def get_current_user(self) -> RemoteUser:
        """Return the session's user or raise NotAuthenticatedError."""
        ...

    async def query(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        order_desc: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Select rows matching all equality ``filters``."""
        ...

    async def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row and return it as persisted."""
        ...

    async def update(
        self, table: str, record_id: str, patch: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Patch a row by id and return it; NotFoundError if no row changed."""
        ...

    async def delete(self, table: str, record_id: str) -> Dict[str, Any]:
        """Delete a row by id and return its last state; NotFoundError if none."""
        ...

    async def subscribe(
        self, table: str, event_mask: FrozenSet[ChangeType] = ALL_CHANGES
    ) -> Subscription:
        """Open a change stream for ``table``."""
        ...

    async def unsubscribe(self, subscription: Subscription) -> None:
        """Release a change stream. Unknown or closed handles are ignored."""
        ...
