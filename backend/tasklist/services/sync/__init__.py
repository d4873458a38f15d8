"""
Task synchronization module.

- TaskSyncController: owns the session's task snapshot, merges load results
  and realtime change events
- QueueSnapshotReporter: forwards snapshot changes to an async transport
"""

from .controller import SnapshotListener, SyncState, TaskSyncController
from .reporter import QueueSnapshotReporter, snapshot_message

__all__ = [
    "SnapshotListener",
    "SyncState",
    "TaskSyncController",
    "QueueSnapshotReporter",
    "snapshot_message",
]
