"""SQLite-backed storage for clients that must survive restarts."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)


class SqliteStorage:
    """``Storage`` implementation keeping every entry in one SQLite table.

    Each write runs in its own transaction and is committed before the
    call returns. ``":memory:"`` keeps a single shared connection so the
    data lives as long as the object.

    Args:
        path: Database file path, or ``":memory:"``.
        table: Table name for the key-value pairs.
    """

    def __init__(self, path: str | Path, table: str = "syncdb_items"):
        if not table.isidentifier():
            raise ValueError(f"invalid table name {table!r}")
        self._is_memory = str(path) == ":memory:"
        self.path = Path(path) if not self._is_memory else None
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._table = table
        self._shared_conn: sqlite3.Connection | None = None
        self._ensure_schema()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        if self._is_memory:
            if self._shared_conn is None:
                self._shared_conn = sqlite3.connect(":memory:")
            yield self._shared_conn
        else:
            conn = sqlite3.connect(self.path)
            try:
                yield conn
            finally:
                conn.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.execute(
                f"CREATE TABLE IF NOT EXISTS {self._table} ("
                "key TEXT PRIMARY KEY, value TEXT NOT NULL)"
            )
            conn.commit()
        logger.debug("Opened sqlite storage at %s", self.path or ":memory:")

    def get_item(self, key: str) -> str | None:
        with self._connection() as conn:
            row = conn.execute(
                f"SELECT value FROM {self._table} WHERE key = ?", (key,)
            ).fetchone()
        return None if row is None else row[0]

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"storage values must be str, got {type(value).__name__}")
        with self._connection() as conn:
            conn.execute(
                f"INSERT INTO {self._table} (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )
            conn.commit()

    def remove_item(self, key: str) -> None:
        with self._connection() as conn:
            conn.execute(f"DELETE FROM {self._table} WHERE key = ?", (key,))
            conn.commit()

    def keys(self) -> Iterable[str]:
        with self._connection() as conn:
            rows = conn.execute(f"SELECT key FROM {self._table} ORDER BY key").fetchall()
        return [row[0] for row in rows]

    def close(self) -> None:
        """Close the shared in-memory connection, if any."""
        if self._shared_conn is not None:
            self._shared_conn.close()
            self._shared_conn = None
