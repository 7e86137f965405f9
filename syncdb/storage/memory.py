"""Dict-backed storage for tests and ephemeral clients."""

from __future__ import annotations

from collections.abc import Iterable, Mapping


class MemoryStorage:
    """In-process ``Storage`` implementation.

    Two SyncDB instances built on the same MemoryStorage see the same
    persisted state, which is how a process restart is modeled in tests.

    Args:
        initial: Optional entries to start with.
    """

    def __init__(self, initial: Mapping[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"storage values must be str, got {type(value).__name__}")
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterable[str]:
        return list(self._data)

    def to_dict(self) -> dict[str, str]:
        """Copy of every stored entry."""
        return dict(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"MemoryStorage(keys={len(self._data)})"
