"""syncdb: keep typed fields in sync between a local store and a server.

Quick start::

    from syncdb import INT, MemoryStorage, SyncDB, SyncServer, resolver, sync

    class ScoreDB(SyncDB):
        def __init__(self, storage):
            super().__init__(storage)
            self.best = self.value("best", 0, INT, resolver.INTMAX)

    server = SyncServer()
    db = ScoreDB(MemoryStorage())
    db.best.update(42)
    sync(db, server)

The library is silent by default. Enable logging with
``syncdb.enable_console_logging()`` or ``syncdb.configure_from_env()``.
"""

import logging

from syncdb.config import SyncConfig
from syncdb.core import resolver, set_resolver
from syncdb.core.codec import (
    BOOLEAN,
    INT,
    LONG,
    STRING,
    Codec,
    EnumCodec,
    FormatError,
)
from syncdb.core.field import Field, MapField, SetField, ValueField
from syncdb.core.ops import ElementOp
from syncdb.core.resolver import CustomResolver, Resolver
from syncdb.core.set_resolver import MapResolver, SetResolver
from syncdb.db import Delta, SyncDB
from syncdb.logging_config import (
    configure_from_env,
    disable_logging,
    enable_console_logging,
    enable_file_logging,
    enable_json_file_logging,
    enable_json_logging,
    enable_timed_file_logging,
    set_level,
    set_module_level,
)
from syncdb.protocol import (
    ProtocolError,
    SyncEndpoint,
    SyncLoop,
    SyncLoopError,
    SyncLoopStats,
    SyncResult,
    SyncServer,
    SyncServerStats,
    SyncState,
    sync,
    sync_async,
)
from syncdb.storage import MemoryStorage, SqliteStorage, Storage
from syncdb.tracing import InMemorySyncRecorder, NullSyncRecorder, SyncRecorder

logging.getLogger("syncdb").addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    # Codecs
    "BOOLEAN",
    "INT",
    "LONG",
    "STRING",
    "Codec",
    "EnumCodec",
    "FormatError",
    # Conflict policies
    "CustomResolver",
    "MapResolver",
    "Resolver",
    "SetResolver",
    "resolver",
    "set_resolver",
    # Fields and database
    "Delta",
    "ElementOp",
    "Field",
    "MapField",
    "SetField",
    "SyncConfig",
    "SyncDB",
    "ValueField",
    # Storage
    "MemoryStorage",
    "SqliteStorage",
    "Storage",
    # Protocol
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
    # Tracing
    "InMemorySyncRecorder",
    "NullSyncRecorder",
    "SyncRecorder",
    # Logging
    "configure_from_env",
    "disable_logging",
    "enable_console_logging",
    "enable_file_logging",
    "enable_json_file_logging",
    "enable_json_logging",
    "enable_timed_file_logging",
    "set_level",
    "set_module_level",
]
