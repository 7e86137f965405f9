"""Sync loop tracing."""

from syncdb.tracing.recorder import InMemorySyncRecorder, NullSyncRecorder, SyncRecorder

__all__ = [
    "SyncRecorder",
    "InMemorySyncRecorder",
    "NullSyncRecorder",
]
