"""Key-value persistence contract used by SyncDB.

SyncDB needs nothing beyond string get/set/remove and key enumeration,
so any platform store (browser local storage, a preferences file, a
database table) can back it by implementing this protocol. Writes must be
durable when ``set_item`` returns; SyncDB relies on that to treat a
round as committed.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable


@runtime_checkable
class Storage(Protocol):
    """String-keyed persistent store."""

    def get_item(self, key: str) -> str | None:
        """Return the stored string, or None if ``key`` is absent."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    def remove_item(self, key: str) -> None:
        """Delete ``key``; a missing key is not an error."""
        ...

    def keys(self) -> Iterable[str]:
        """All stored keys."""
        ...
