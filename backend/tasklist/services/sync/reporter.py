"""
Queue-backed snapshot reporter.

Bridges the synchronous controller listener callback with an async
transport (WebSocket sender task).
"""

import asyncio
from typing import Any, Dict, Optional

from .controller import TaskSyncController


def snapshot_message(controller: TaskSyncController) -> Dict[str, Any]:
    """Build the JSON message describing the controller's current view."""
    return {
        "type": "snapshot",
        "state": controller.state.value,
        "error": controller.error,
        "tasks": [task.to_response().model_dump(mode="json") for task in controller.snapshot],
    }


class QueueSnapshotReporter:
    """
    Controller listener that pushes snapshot messages to an asyncio.Queue.

    Usage:
        queue = asyncio.Queue()
        reporter = QueueSnapshotReporter(queue)
        remove = controller.add_listener(reporter)

        # In the sender task:
        while True:
            message = await queue.get()
            if message is None:
                break
            await websocket.send_json(message)
    """

    def __init__(self, queue: Optional[asyncio.Queue] = None):
        self.queue = queue if queue is not None else asyncio.Queue()

    def __call__(self, controller: TaskSyncController) -> None:
        self.queue.put_nowait(snapshot_message(controller))

    def signal_end(self) -> None:
        """Signal end of stream."""
        self.queue.put_nowait(None)
