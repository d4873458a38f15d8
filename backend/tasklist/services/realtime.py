"""
WebSocket session registry for live task synchronization.

Each WebSocket connection owns one TaskSyncController. A user may have
several connections open (several devices or tabs).
"""

import logging
from collections import defaultdict
from dataclasses import dataclass

from fastapi import WebSocket

from tasklist.services.sync import TaskSyncController

logger = logging.getLogger(__name__)


@dataclass
class SyncSession:
    websocket: WebSocket
    controller: TaskSyncController


class ConnectionManager:
    """Tracks live sync sessions per user and tears them down on shutdown."""

    def __init__(self):
        # user_id -> sessions
        self._sessions: dict[str, list[SyncSession]] = defaultdict(list)

    def register(self, user_id: str, websocket: WebSocket, controller: TaskSyncController) -> None:
        """Register an accepted connection and its controller."""
        self._sessions[user_id].append(SyncSession(websocket, controller))
        logger.info(
            f"Sync session opened: user={user_id}, "
            f"total_connections={len(self._sessions[user_id])}"
        )

    def unregister(self, user_id: str, websocket: WebSocket) -> None:
        """Forget the connection's session. Unknown connections are ignored."""
        sessions = self._sessions.get(user_id)
        if not sessions:
            return

        remaining = [s for s in sessions if s.websocket is not websocket]
        if len(remaining) == len(sessions):
            logger.warning(f"Sync session not found for user={user_id}")
            return

        if remaining:
            self._sessions[user_id] = remaining
        else:
            del self._sessions[user_id]

        logger.info(
            f"Sync session closed: user={user_id}, remaining_connections={len(remaining)}"
        )

    async def teardown_all(self) -> None:
        """Detach every controller (application shutdown)."""
        sessions = [s for user_sessions in self._sessions.values() for s in user_sessions]
        self._sessions.clear()

        for session in sessions:
            try:
                await session.controller.teardown()
            except Exception as e:
                logger.error(f"Error tearing down sync session: {e}")

        if sessions:
            logger.info(f"Tore down {len(sessions)} sync sessions")

    def get_connection_count(self, user_id: str) -> int:
        """Get number of active connections for a user."""
        return len(self._sessions.get(user_id, []))

    def get_total_connections(self) -> int:
        """Get total number of active connections."""
        return sum(len(sessions) for sessions in self._sessions.values())


# Singleton instance for app-wide use
connection_manager = ConnectionManager()
