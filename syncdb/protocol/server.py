"""Authoritative side of the sync exchange.

``SyncServer`` keeps the canonical version and, per key, the history of
accepted changes. Its decision table is the protocol every real server
must reproduce:

====================================  ==========================================
client version vs server version      response
====================================  ==========================================
client > server                       ``ProtocolError`` (client state is corrupt)
client < server                       conflict: every key changed since client
client == server, empty delta         clean, version unchanged
client == server, non-empty delta     clean, version + 1, keys stamped
====================================  ==========================================

Scalar keys keep only their latest value. Set and map keys keep every
accepted operation list, so a client at any older version receives the
concatenated operations it has not seen yet.

Example::

    server = SyncServer()
    result = server.sync(0, {"maxInt": "40"})
    assert result.clean_sync and result.version == 1
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from syncdb.core.codec import FormatError

logger = logging.getLogger(__name__)


class ProtocolError(RuntimeError):
    """A client claimed a version the server never issued.

    Not recoverable by retrying: the client's persisted state is corrupt
    or the server it talks to was replaced or rolled back.
    """


@dataclass(frozen=True)
class SyncResult:
    """Server answer to one sync request.

    Attributes:
        version: Server version the client is now at (after merging, for
            conflicts).
        delta: Changes the client must merge; empty for clean syncs.
        clean_sync: True when the client's delta was accepted outright.
    """

    version: int
    delta: dict[str, Any] = field(default_factory=dict)
    clean_sync: bool = True

    @classmethod
    def clean(cls, version: int) -> SyncResult:
        return cls(version=version, delta={}, clean_sync=True)

    @classmethod
    def conflict(cls, version: int, delta: dict[str, Any]) -> SyncResult:
        return cls(version=version, delta=delta, clean_sync=False)

    def to_dict(self) -> dict[str, Any]:
        return {"version": self.version, "delta": self.delta, "clean_sync": self.clean_sync}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SyncResult:
        """Parse a server answer.

        Raises:
            FormatError: If a field has the wrong type.
        """
        version = data.get("version")
        delta = data.get("delta") or {}
        clean_sync = data.get("clean_sync", True)
        if isinstance(version, bool) or not isinstance(version, int):
            raise FormatError(f"version must be an integer, got {version!r}")
        if not isinstance(delta, Mapping):
            raise FormatError(f"delta must be an object, got {delta!r}")
        if not isinstance(clean_sync, bool):
            raise FormatError(f"clean_sync must be a boolean, got {clean_sync!r}")
        return cls(version=version, delta=dict(delta), clean_sync=clean_sync)


@dataclass(frozen=True)
class SyncServerStats:
    """Statistics for a SyncServer.

    Attributes:
        requests: Sync requests received.
        accepted: Non-empty deltas accepted (each advanced the version).
        no_ops: Up-to-date requests with nothing to send.
        conflicts: Requests from clients that were behind.
        faults: Requests rejected with ProtocolError.
    """

    requests: int = 0
    accepted: int = 0
    no_ops: int = 0
    conflicts: int = 0
    faults: int = 0


@dataclass(frozen=True)
class _Datum:
    version: int
    value: Any


class SyncServer:
    """In-process authority implementing the sync decision table."""

    def __init__(self) -> None:
        self._version = 0
        self._data: dict[str, list[_Datum]] = {}
        self._requests = 0
        self._accepted = 0
        self._no_ops = 0
        self._conflicts = 0
        self._faults = 0

    @property
    def version(self) -> int:
        """Current canonical version."""
        return self._version

    @property
    def stats(self) -> SyncServerStats:
        """Frozen snapshot of server statistics."""
        return SyncServerStats(
            requests=self._requests,
            accepted=self._accepted,
            no_ops=self._no_ops,
            conflicts=self._conflicts,
            faults=self._faults,
        )

    def keys(self) -> list[str]:
        return list(self._data)

    def value_of(self, key: str) -> Any:
        """What a client at version 0 would receive for ``key``, or None."""
        return self._value_since(key, 0)

    def sync(self, client_version: int, delta: Mapping[str, Any]) -> SyncResult:
        """Handle one sync request.

        Raises:
            ProtocolError: If ``client_version`` is ahead of the server.
        """
        self._requests += 1
        if client_version > self._version:
            self._faults += 1
            logger.error(
                "Client claims version %d but server is at %d", client_version, self._version
            )
            raise ProtocolError(
                f"client version {client_version} is ahead of server version {self._version}"
            )

        if client_version < self._version:
            self._conflicts += 1
            return self._need_sync(client_version)

        if not delta:
            self._no_ops += 1
            return SyncResult.clean(self._version)

        self._version += 1
        for key, value in delta.items():
            self._record(key, value)
        self._accepted += 1
        logger.info("Accepted %d keys at version %d", len(delta), self._version)
        return SyncResult.clean(self._version)

    def _record(self, key: str, value: Any) -> None:
        datum = _Datum(self._version, value)
        history = self._data.get(key)
        if history is None or not isinstance(value, list):
            self._data[key] = [datum]
        else:
            history.append(datum)

    def _need_sync(self, client_version: int) -> SyncResult:
        delta = {}
        for key in self._data:
            value = self._value_since(key, client_version)
            if value is not None:
                delta[key] = value
        logger.info(
            "Client at version %d is behind %d; sending %d keys",
            client_version, self._version, len(delta),
        )
        return SyncResult.conflict(self._version, delta)

    def _value_since(self, key: str, client_version: int) -> Any:
        history = self._data.get(key)
        if not history or history[-1].version <= client_version:
            return None
        latest = history[-1].value
        if not isinstance(latest, list):
            return latest
        ops: list = []
        for datum in history:
            if datum.version > client_version:
                ops.extend(datum.value)
        return ops
