"""
Supabase implementation of the RemoteStore protocol.

Provides:
- Table queries through the async PostgREST client (RLS applies via the
  user's access token)
- A Realtime channel per subscription, forwarding postgres_changes into
  the Subscription queue
- Consistent error translation into tasklist.exceptions

Usage:
    client = await get_async_supabase_client(access_token)
    store = SupabaseRemoteStore(client, access_token)
    repository = TaskRepository(store)
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, List, Optional

import httpx
from postgrest.exceptions import APIError
from realtime import RealtimeSubscribeStates
from supabase import AsyncClient
from supabase_auth.errors import AuthApiError

from tasklist.exceptions import NotAuthenticatedError, NotFoundError, RemoteError
from tasklist.services.remote_store import (
    ALL_CHANGES,
    ChangeEvent,
    ChangeType,
    RemoteUser,
    Subscription,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "Supabase"


def parse_change_payload(payload: Dict[str, Any]) -> Optional[ChangeEvent]:
    """
    Normalize a postgres_changes payload into a ChangeEvent.

    Accepts both shapes the Realtime client has delivered:
    ``{"eventType", "new", "old"}`` and ``{"data": {"type", "record", "old_record"}}``.
    Empty ``{}`` records (what Realtime sends for the absent side) become None.

    Returns:
        ChangeEvent, or None if the payload carries no recognizable event type
    """
    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload

    raw_type = data.get("eventType") or data.get("type")
    try:
        event_type = ChangeType(str(raw_type).upper())
    except ValueError:
        return None

    new = data.get("new") if "new" in data else data.get("record")
    old = data.get("old") if "old" in data else data.get("old_record")

    return ChangeEvent(
        event_type=event_type,
        new=new or None,
        old=old or None,
    )


class SupabaseRemoteStore:
    """RemoteStore backed by a Supabase AsyncClient."""

    def __init__(self, client: AsyncClient, access_token: Optional[str] = None):
        """
        Args:
            client: Async Supabase client (already authorized for PostgREST)
            access_token: User JWT; when omitted the client's own session is used
        """
        self._client = client
        self._access_token = access_token
        # Subscription -> realtime channel
        self._channels: Dict[Subscription, Any] = {}

    # =========================================================================
    # Auth
    # =========================================================================

    async def get_current_user(self) -> RemoteUser:
        try:
            response = await self._client.auth.get_user(self._access_token)
        except AuthApiError as e:
            raise NotAuthenticatedError(str(e) or "User not authenticated") from e
        except httpx.HTTPError as e:
            raise RemoteError(SERVICE_NAME, f"auth service unreachable: {e}") from e

        user = response.user if response else None
        if not user:
            raise NotAuthenticatedError("No authenticated user found")

        return RemoteUser(id=str(user.id), email=user.email)

    # =========================================================================
    # Table Operations
    # =========================================================================

    def _table(self, table: str):
        return self._client.table(table)

    async def _execute(self, query, operation: str, table: str) -> List[Dict[str, Any]]:
        """Execute a query builder, translating SDK errors."""
        try:
            response = await query.execute()
        except APIError as e:
            logger.error(
                f"{operation} on {table} rejected: {e.message}",
                extra={"error": e.code or e.message},
            )
            raise RemoteError(SERVICE_NAME, e.message) from e
        except httpx.HTTPError as e:
            logger.error(f"{operation} on {table} failed: {e}", extra={"error": str(e)})
            raise RemoteError(SERVICE_NAME, f"request failed: {e}") from e

        return response.data or []

    async def query(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        order_desc: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = self._table(table).select("*")

        if filters:
            for key, value in filters.items():
                query = query.eq(key, value)

        if order_by:
            query = query.order(order_by, desc=order_desc)

        if limit:
            query = query.limit(limit)

        return await self._execute(query, "select", table)

    async def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        rows = await self._execute(
            self._table(table).insert(_serialize(record)), "insert", table
        )
        if not rows:
            raise RemoteError(SERVICE_NAME, f"insert into {table} returned no row")
        return rows[0]

    async def update(
        self, table: str, record_id: str, patch: Dict[str, Any]
    ) -> Dict[str, Any]:
        rows = await self._execute(
            self._table(table).update(_serialize(patch)).eq("id", record_id),
            "update",
            table,
        )
        # Zero rows: absent, or hidden by row-level security
        if not rows:
            raise NotFoundError(f"Row {record_id} in {table}")
        return rows[0]

    async def delete(self, table: str, record_id: str) -> Dict[str, Any]:
        rows = await self._execute(
            self._table(table).delete().eq("id", record_id),
            "delete",
            table,
        )
        if not rows:
            raise NotFoundError(f"Row {record_id} in {table}")
        return rows[0]

    # =========================================================================
    # Realtime
    # =========================================================================

    def _create_callback(self, subscription: Subscription) -> Callable[[Dict[str, Any]], None]:
        """Create the postgres_changes callback feeding ``subscription``."""

        def callback(payload: Dict[str, Any]) -> None:
            try:
                event = parse_change_payload(payload)
                if event is None:
                    logger.warning(
                        f"Ignoring unrecognized change on {subscription.table}: {payload}"
                    )
                    return
                subscription.deliver(event)
            except Exception as e:
                logger.error(f"Error in realtime callback: {e}", exc_info=True)

        return callback

    async def subscribe(
        self, table: str, event_mask: FrozenSet[ChangeType] = ALL_CHANGES
    ) -> Subscription:
        subscription = Subscription(table, event_mask)
        channel = self._client.channel(f"{table}-changes-{id(subscription):x}")

        event = "*" if subscription.event_mask == ALL_CHANGES else None
        callback = self._create_callback(subscription)
        if event:
            channel.on_postgres_changes(event, schema="public", table=table, callback=callback)
        else:
            for change in subscription.event_mask:
                channel.on_postgres_changes(
                    change.value, schema="public", table=table, callback=callback
                )

        def on_subscribe(status: RealtimeSubscribeStates, err: Optional[Exception]) -> None:
            if status == RealtimeSubscribeStates.SUBSCRIBED:
                logger.info(f"Subscribed to changes on {table}")
            elif err:
                logger.error(f"Failed to subscribe to changes on {table}: {err}")
            else:
                logger.info(f"Realtime subscription status for {table}: {status}")

        try:
            await channel.subscribe(on_subscribe)
        except Exception as e:
            logger.error(f"Realtime subscribe on {table} failed: {e}")
            raise RemoteError(f"{SERVICE_NAME} Realtime", str(e) or None) from e

        self._channels[subscription] = channel
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        channel = self._channels.pop(subscription, None)
        try:
            if channel is not None:
                await self._client.remove_channel(channel)
                logger.info(f"Unsubscribed from changes on {subscription.table}")
        except Exception as e:
            logger.error(f"Error removing realtime channel: {e}")
        finally:
            subscription.close()


def _serialize(data: Dict[str, Any]) -> Dict[str, Any]:
    """Convert datetimes to ISO strings for PostgREST."""
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in data.items()
    }
