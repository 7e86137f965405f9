"""Client-side database of named fields kept in sync with a server.

A SyncDB owns an ordered set of fields and the version number it last
agreed on with the server. Applications declare their schema by
subclassing and registering fields in ``__init__``::

    class PlayerDB(SyncDB):
        def __init__(self, storage):
            super().__init__(storage)
            self.tutorial_done = self.value("tutorialDone", False, BOOLEAN, resolver.TRUE)
            self.high_score = self.value("highScore", 0, INT, resolver.INTMAX)
            self.unlocked = self.set("unlocked", STRING, set_resolver.UNION)
            self.best_times = self.map("bestTimes", STRING, INT, resolver.INTMAX)

A sync round sends ``(version(), get_delta())`` to the server and feeds
the answer back through ``note_sync`` (clean acceptance) or
``apply_delta`` (the client was behind and must merge). Both write the
new state through to storage before returning, so a restarted client
resumes from the last committed round.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any, TypeVar

from syncdb.config import SyncConfig
from syncdb.core.codec import FormatError
from syncdb.core.field import Field, MapField, MergePlan, SetField, ValueField
from syncdb.core.set_resolver import as_map_resolver

if TYPE_CHECKING:
    from syncdb.core.codec import Codec
    from syncdb.core.resolver import Resolver
    from syncdb.core.set_resolver import MapResolver, SetResolver
    from syncdb.storage.base import Storage

logger = logging.getLogger(__name__)

T = TypeVar("T")

Delta = dict[str, Any]


class SyncDB:
    """A versioned collection of fields backed by persistent storage.

    Args:
        storage: Key-value store holding the version and field values.
        config: Reserved-key prefix and other settings. Defaults to
            ``SyncConfig()``.

    Raises:
        FormatError: If the persisted version is corrupt.
    """

    def __init__(self, storage: Storage, config: SyncConfig | None = None):
        self._storage = storage
        self._config = config or SyncConfig()
        self._fields: dict[str, Field] = {}
        # States offered by the last get_delta(), committed by note_sync().
        self._outgoing: dict[str, Any] | None = None
        self._version = self._load_version()

    @property
    def storage(self) -> Storage:
        return self._storage

    @property
    def config(self) -> SyncConfig:
        return self._config

    # -- schema ---------------------------------------------------------------

    def value(self, key: str, default: T, codec: Codec[T], resolver: Resolver[T]) -> ValueField[T]:
        """Register a scalar field."""
        return self._register(ValueField(key, default, codec, resolver))

    def set(self, key: str, codec: Codec, resolver: SetResolver) -> SetField:
        """Register a set field."""
        return self._register(SetField(key, codec, resolver))

    def map(
        self,
        key: str,
        key_codec: Codec,
        value_codec: Codec,
        resolver: MapResolver | Resolver,
    ) -> MapField:
        """Register a map field.

        A scalar ``Resolver`` is applied per key via ``MapResolver.per_key``.
        """
        return self._register(MapField(key, key_codec, value_codec, as_map_resolver(resolver)))

    def _register(self, field: Field) -> Any:
        if field.key in self._fields:
            raise ValueError(f"duplicate field key {field.key!r}")
        if self._config.is_reserved(field.key):
            raise ValueError(
                f"field key {field.key!r} collides with reserved prefix {self._config.key_prefix!r}"
            )
        self._load_field(field)
        field._bind(self._persist)
        self._fields[field.key] = field
        return field

    def fields(self) -> Iterator[Field]:
        """Registered fields in declaration order."""
        return iter(list(self._fields.values()))

    def field(self, key: str) -> Field:
        return self._fields[key]

    # -- sync protocol -----------------------------------------------------------

    def version(self) -> int:
        """The server version this client is synchronized to."""
        return self._version

    def has_unsynced_changes(self) -> bool:
        """True exactly when at least one field is dirty."""
        return any(f.dirty for f in self._fields.values())

    def dirty_keys(self) -> list[str]:
        return [key for key, f in self._fields.items() if f.dirty]

    def get_delta(self) -> Delta:
        """Encode every dirty field's pending change.

        Dirty state is not cleared; calling this twice without an
        intervening edit returns equal deltas.
        """
        delta: Delta = {}
        outgoing: dict[str, Any] = {}
        for key, f in self._fields.items():
            if f.dirty:
                delta[key] = f.wire_payload()
                outgoing[key] = f.offer()
        self._outgoing = outgoing
        return delta

    def note_sync(self, new_version: int) -> None:
        """Commit a clean acceptance of the last ``get_delta()``.

        The values offered by that delta become the new baselines. Edits
        made after it was computed stay dirty for the next round. Without a
        preceding ``get_delta()`` (or after ``reload()``) nothing was offered,
        so only the version advances and dirty fields stay dirty. Calling
        again with the same version changes nothing.

        Raises:
            ValueError: If ``new_version`` is older than ``version()``.
        """
        self._check_version(new_version)
        offered = self._outgoing or {}
        if self._outgoing is None and self.has_unsynced_changes():
            logger.warning(
                "note_sync(%d) without a preceding get_delta(); pending changes stay dirty: %s",
                new_version, ", ".join(self.dirty_keys()),
            )

        for key, token in offered.items():
            f = self._fields[key]
            f.commit(token)
            self._persist(f)
        self._set_version(new_version)
        self._outgoing = None
        logger.info("Clean sync at version %d (%d fields committed)", new_version, len(offered))

    def apply_delta(self, new_version: int, server_delta: Mapping[str, Any]) -> None:
        """Merge a conflict delta from a server that was ahead of us.

        Every server value is decoded and resolved before any field
        changes, so a malformed value leaves the database untouched. Fields
        whose merged value differs from the server's stay dirty and are
        offered again; fields missing from ``server_delta`` keep their
        pending state.

        Raises:
            FormatError: If a server value cannot be decoded.
            ValueError: If ``new_version`` is older than ``version()``.
        """
        self._check_version(new_version)

        plans: dict[str, MergePlan] = {}
        for key, payload in server_delta.items():
            f = self._fields.get(key)
            if f is None:
                logger.warning("Ignoring delta for unknown field %r", key)
                continue
            plans[key] = f.plan_merge(payload)

        for key, plan in plans.items():
            f = self._fields[key]
            f.apply_merge(plan)
            self._persist(f)
        self._set_version(new_version)
        self._outgoing = None

        redirtied = [key for key in plans if self._fields[key].dirty]
        logger.info(
            "Merged %d fields at version %d (%d still pending: %s)",
            len(plans), new_version, len(redirtied), ", ".join(redirtied) or "-",
        )

    # -- persistence ---------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Current decoded value of every field, by key."""
        return {key: f.snapshot() for key, f in self._fields.items()}

    def reload(self) -> None:
        """Re-read the version and every field from storage."""
        self._version = self._load_version()
        for f in self._fields.values():
            self._load_field(f)
        self._outgoing = None

    def _load_version(self) -> int:
        raw = self._storage.get_item(self._config.version_key)
        if raw is None:
            return 0
        try:
            version = int(raw)
        except ValueError:
            raise FormatError(f"invalid version {raw!r}", key=self._config.version_key) from None
        if version < 0:
            raise FormatError(f"negative version {version}", key=self._config.version_key)
        return version

    def _load_field(self, field: Field) -> None:
        field.load(
            self._storage.get_item(field.key),
            self._storage.get_item(self._config.baseline_key(field.key)),
            self._storage.get_item(self._config.pending_key(field.key)),
        )

    def _persist(self, field: Field) -> None:
        self._storage.set_item(field.key, field.encode_value())
        baseline_key = self._config.baseline_key(field.key)
        if field.dirty:
            self._storage.set_item(baseline_key, field.encode_baseline())
        else:
            self._storage.remove_item(baseline_key)
        pending = field.encode_pending()
        pending_key = self._config.pending_key(field.key)
        if pending is None:
            self._storage.remove_item(pending_key)
        else:
            self._storage.set_item(pending_key, pending)

    def _set_version(self, version: int) -> None:
        self._version = version
        self._storage.set_item(self._config.version_key, str(version))

    def _check_version(self, new_version: int) -> None:
        if new_version < self._version:
            raise ValueError(f"version may not move backwards: {new_version} < {self._version}")

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(version={self._version}, fields={len(self._fields)}, "
            f"dirty={self.dirty_keys()})"
        )
