"""The sync exchange: the authoritative server and the client loop."""

from syncdb.protocol.loop import (
    SyncEndpoint,
    SyncLoop,
    SyncLoopError,
    SyncLoopStats,
    SyncState,
    sync,
    sync_async,
)
from syncdb.protocol.server import ProtocolError, SyncResult, SyncServer, SyncServerStats

__all__ = [
    "ProtocolError",
    "SyncEndpoint",
    "SyncLoop",
    "SyncLoopError",
    "SyncLoopStats",
    "SyncResult",
    "SyncServer",
    "SyncServerStats",
    "SyncState",
    "sync",
    "sync_async",
]
