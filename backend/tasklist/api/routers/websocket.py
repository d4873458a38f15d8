"""WebSocket router for live task synchronization.

Each connection runs its own TaskSyncController and receives the full
snapshot after every change.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from tasklist.core.logging_config import session_user
from tasklist.dependencies import COOKIE_NAME_ACCESS
from tasklist.services.db.supabase_store import SupabaseRemoteStore
from tasklist.services.errors import Result, classify_error
from tasklist.services.realtime import connection_manager
from tasklist.services.remote_store import RemoteStore
from tasklist.services.sync import QueueSnapshotReporter, TaskSyncController
from tasklist.supabase_client import get_async_supabase_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["websocket"])

StoreFactory = Callable[[str], Awaitable[RemoteStore]]


async def create_remote_store(access_token: str) -> RemoteStore:
    client = await get_async_supabase_client(access_token)
    return SupabaseRemoteStore(client, access_token)


def get_store_factory() -> StoreFactory:
    """Dependency returning the coroutine that builds a store for a token."""
    return create_remote_store


def get_websocket_token(websocket: WebSocket) -> Optional[str]:
    """
    Read the JWT from the cookie, or from ``?token=`` for clients that
    cannot attach cookies to a WebSocket handshake.
    """
    return websocket.cookies.get(COOKIE_NAME_ACCESS) or websocket.query_params.get("token")


def result_message(op: str, result: Result) -> Dict[str, Any]:
    return {
        "type": "result",
        "op": op,
        "ok": result.ok,
        "error": result.error.message if result.error else None,
        "error_code": result.error.error_type.value if result.error else None,
        "task": result.data.to_response().model_dump(mode="json") if result.ok else None,
    }


async def handle_client_message(
    controller: TaskSyncController, data: Dict[str, Any]
) -> Optional[Dict[str, Any]]:
    """
    Execute one client message and return the reply, if any.

    Snapshot changes are pushed separately by the controller listener.
    """
    msg_type = data.get("type")

    if msg_type == "ping":
        return {"type": "pong"}

    if msg_type == "refresh":
        await controller.refresh()
        return None

    if msg_type == "create":
        return result_message("create", await controller.create_task(data.get("title")))

    if msg_type == "update":
        return result_message(
            "update", await controller.update_task(data.get("id"), data.get("title"))
        )

    if msg_type == "delete":
        return result_message("delete", await controller.delete_task(data.get("id")))

    return {"type": "error", "error": f"Unknown message type: {msg_type}"}


async def _forward_messages(websocket: WebSocket, queue: asyncio.Queue) -> None:
    """Sender task: drain the queue into the socket until the end marker."""
    while True:
        message = await queue.get()
        if message is None:
            break
        await websocket.send_json(message)


@router.websocket("/tasks")
async def websocket_tasks(
    websocket: WebSocket,
    store_factory: StoreFactory = Depends(get_store_factory),
):
    """
    WebSocket endpoint for live task synchronization.

    Authentication is via HttpOnly cookie (sb_access_token) or ``?token=``.

    Server sends:
    - {"type": "snapshot", "state", "error", "tasks": [...]} after every change
    - {"type": "result", "op", "ok", "error", "error_code", "task"} per command
    - {"type": "pong"}

    Client can send:
    - {"type": "ping"}
    - {"type": "refresh"}
    - {"type": "create", "title"}
    - {"type": "update", "id", "title"}
    - {"type": "delete", "id"}
    """
    access_token = get_websocket_token(websocket)
    if not access_token:
        logger.debug("WebSocket auth failed: no access token")
        await websocket.close(code=4001, reason="Unauthorized")
        return

    try:
        store = await store_factory(access_token)
        user = await store.get_current_user()
    except Exception as e:
        logger.warning(f"WebSocket auth error: {classify_error(e).message}")
        await websocket.close(code=4001, reason="Unauthorized")
        return

    await websocket.accept()
    session_user.set(user.id)

    controller = TaskSyncController(store)
    reporter = QueueSnapshotReporter()
    controller.add_listener(reporter)
    connection_manager.register(user.id, websocket, controller)
    sender = asyncio.create_task(_forward_messages(websocket, reporter.queue))

    try:
        await controller.start()

        while True:
            try:
                data = await websocket.receive_json()
            except WebSocketDisconnect:
                logger.info(f"WebSocket client disconnected: user={user.id}")
                break
            except ValueError:
                logger.debug(f"Ignoring non-JSON frame from user={user.id}")
                reporter.queue.put_nowait({"type": "error", "error": "Invalid JSON"})
                continue

            if not isinstance(data, dict):
                reporter.queue.put_nowait(
                    {"type": "error", "error": "Message must be a JSON object"}
                )
                continue

            reply = await handle_client_message(controller, data)
            if reply is not None:
                reporter.queue.put_nowait(reply)

    except Exception as e:
        logger.warning(f"WebSocket session error: {e}", extra={"user_id": user.id})

    finally:
        reporter.signal_end()
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
        await controller.teardown()
        connection_manager.unregister(user.id, websocket)
