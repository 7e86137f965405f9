"""Persistence backends for SyncDB.

- **Storage**: the protocol SyncDB depends on.
- **MemoryStorage**: dict-backed, for tests and ephemeral clients.
- **SqliteStorage**: one SQLite table, durable across restarts.
"""

from syncdb.storage.base import Storage
from syncdb.storage.memory import MemoryStorage
from syncdb.storage.sqlite import SqliteStorage

__all__ = [
    "Storage",
    "MemoryStorage",
    "SqliteStorage",
]
