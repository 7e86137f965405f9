"""Typed, versioned slots owned by a SyncDB.

Every field keeps two states: its current value and its *baseline*, the
value last confirmed by the server. A field is dirty when the two differ,
and the changes it offers to the server are derived from the
difference (the value itself for scalars, add/remove operations for sets
and maps). Dirty tracking is a snapshot-and-diff: reverting a local edit
makes the field clean again and nothing is sent. The one exception is a
collection element removed and then added back, which is remembered and
offered as an addition so it can win over a concurrent removal.

Merging is split in two so a SyncDB can refuse a whole delta when any key
fails to decode: ``plan_merge`` decodes and resolves without touching the
field, ``apply_merge`` commits the result.

Fields are created through ``SyncDB.value``, ``SyncDB.set`` and
``SyncDB.map``; the owning database persists every change.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from syncdb.core.codec import (
    Codec,
    FormatError,
    decode_map,
    decode_set,
    encode_map,
    encode_set,
)
from syncdb.core.ops import (
    added_elements,
    apply_map_ops,
    apply_set_ops,
    diff_maps,
    diff_sets,
    ops_from_wire,
    ops_to_wire,
)
from syncdb.core.set_resolver import MapResolver, SetResolver

if TYPE_CHECKING:
    from collections.abc import Callable

    from syncdb.core.resolver import Resolver

    Listener = Callable[[str, Any, Any], None]

logger = logging.getLogger(__name__)

T = TypeVar("T")
K = TypeVar("K")
V = TypeVar("V")


@dataclass(frozen=True)
class MergePlan:
    """Outcome of merging a server change into a field, not yet applied.

    Attributes:
        baseline: The server's state for the key after the exchange.
        value: The merged value the field will hold.
        pending: Elements or keys re-added locally that must still be
            offered to the server after the merge.
    """

    baseline: Any
    value: Any
    pending: frozenset = frozenset()


class Field(ABC, Generic[T]):
    """Base class for a named field.

    Args:
        key: Field name; also its storage and wire key.
    """

    def __init__(self, key: str):
        self.key = key
        self._listeners: list[Listener] = []
        self._on_change: Callable[[Field], None] | None = None

    # -- change notification ------------------------------------------------

    def connect(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(key, new_value, old_value)``.

        Returns:
            A callable that removes the listener again.
        """
        self._listeners.append(listener)

        def disconnect() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return disconnect

    def _bind(self, on_change: Callable[[Field], None]) -> None:
        self._on_change = on_change

    def _changed(self, new: Any, old: Any) -> None:
        if self._on_change is not None:
            self._on_change(self)
        for listener in list(self._listeners):
            listener(self.key, new, old)

    # -- sync state ---------------------------------------------------------

    @property
    @abstractmethod
    def dirty(self) -> bool:
        """True when the current value differs from the confirmed baseline."""

    @abstractmethod
    def snapshot(self) -> Any:
        """Immutable copy of the current value."""

    @abstractmethod
    def wire_payload(self) -> Any:
        """The pending change in wire form."""

    def offer(self) -> Any:
        """Token for the state sent with ``wire_payload``, passed back to ``commit``."""
        return self.snapshot()

    @abstractmethod
    def commit(self, offered: Any) -> None:
        """Record the state captured by ``offer`` as the server-confirmed baseline."""

    @abstractmethod
    def plan_merge(self, payload: Any) -> MergePlan:
        """Decode a server change and resolve it against the local state.

        Raises:
            FormatError: If ``payload`` cannot be decoded.
        """

    @abstractmethod
    def apply_merge(self, plan: MergePlan) -> None:
        """Install a plan produced by ``plan_merge``."""

    # -- persistence --------------------------------------------------------

    @abstractmethod
    def encode_value(self) -> str:
        """Persisted form of the current value."""

    @abstractmethod
    def encode_baseline(self) -> str:
        """Persisted form of the baseline."""

    def encode_pending(self) -> str | None:
        """Persisted form of local re-additions, or None when there are none."""
        return None

    @abstractmethod
    def load(
        self, raw_value: str | None, raw_baseline: str | None, raw_pending: str | None = None
    ) -> None:
        """Restore state from storage.

        Absent values fall back to the declared default; an absent baseline
        means the field was clean when persisted.
        """

    def _decode(self, decode: Callable[[str], Any], raw: str) -> Any:
        try:
            return decode(raw)
        except FormatError as e:
            raise FormatError(str(e), key=self.key) from e


class ValueField(Field[T]):
    """A scalar field.

    Args:
        key: Field name.
        default: Value used when nothing is persisted.
        codec: Codec for the value type.
        resolver: Policy for concurrent changes.
    """

    def __init__(self, key: str, default: T, codec: Codec[T], resolver: Resolver[T]):
        super().__init__(key)
        self.codec = codec
        self.resolver = resolver
        self.default = default
        codec.encode(default)
        self._value: T = default
        self._baseline: T = default

    @property
    def value(self) -> T:
        return self._value

    @value.setter
    def value(self, value: T) -> None:
        self.update(value)

    def get(self) -> T:
        return self._value

    def update(self, value: T) -> None:
        """Set a new value; equal values are ignored."""
        self.codec.encode(value)
        if value == self._value:
            return
        old = self._value
        self._value = value
        self._changed(value, old)

    @property
    def baseline(self) -> T:
        return self._baseline

    @property
    def dirty(self) -> bool:
        return self.codec.encode(self._value) != self.codec.encode(self._baseline)

    def snapshot(self) -> T:
        return self._value

    def wire_payload(self) -> str:
        return self.codec.encode(self._value)

    def commit(self, snapshot: T) -> None:
        self._baseline = snapshot

    def plan_merge(self, payload: Any) -> MergePlan:
        if not isinstance(payload, str):
            raise FormatError(f"expected an encoded scalar, got {payload!r}", key=self.key)
        server_value = self._decode(self.codec.decode, payload)
        if self.dirty:
            merged = self.resolver.resolve(self._value, server_value)
            logger.debug(
                "%s: resolved local %r vs server %r -> %r via %r",
                self.key, self._value, server_value, merged, self.resolver,
            )
        else:
            merged = server_value
        return MergePlan(baseline=server_value, value=merged)

    def apply_merge(self, plan: MergePlan) -> None:
        old = self._value
        self._baseline = plan.baseline
        self._value = plan.value
        if old != plan.value:
            self._changed(plan.value, old)

    def encode_value(self) -> str:
        return self.codec.encode(self._value)

    def encode_baseline(self) -> str:
        return self.codec.encode(self._baseline)

    def load(
        self, raw_value: str | None, raw_baseline: str | None, raw_pending: str | None = None
    ) -> None:
        value = self.default if raw_value is None else self._decode(self.codec.decode, raw_value)
        baseline = value if raw_baseline is None else self._decode(self.codec.decode, raw_baseline)
        self._value = value
        self._baseline = baseline

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ValueField):
            return self.key == other.key and self._value == other._value
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ValueField({self.key!r}, value={self._value!r}, dirty={self.dirty})"

class SetField(Field[frozenset]):
    """A set field merged element by element.

    Besides its contents and baseline the field remembers elements that
    were removed and then added back since the last sync. Their state
    matches the baseline, yet they are offered as additions so they win
    over a concurrent removal on another client.

    Args:
        key: Field name.
        codec: Codec for the element type.
        resolver: Set merge policy.
    """

    def __init__(self, key: str, codec: Codec, resolver: SetResolver):
        super().__init__(key)
        self.codec = codec
        self.resolver = resolver
        self._elements: set = set()
        self._baseline: frozenset = frozenset()
        # element -> tick of the add() that brought it back
        self._readded: dict[Any, int] = {}
        self._tick = 0

    @property
    def elements(self) -> frozenset:
        return frozenset(self._elements)

    @property
    def baseline(self) -> frozenset:
        return self._baseline

    @property
    def readded(self) -> frozenset:
        """Baseline elements removed and added back since the last sync."""
        return frozenset(self._readded)

    def add(self, element: Any) -> bool:
        """Add ``element``. Returns False if it was already present."""
        self.codec.encode(element)
        if element in self._elements:
            return False
        old = self.elements
        self._elements.add(element)
        self._note_added([element])
        self._changed(self.elements, old)
        return True

    def discard(self, element: Any) -> bool:
        """Remove ``element`` if present. Returns True if it was removed."""
        if element not in self._elements:
            return False
        old = self.elements
        self._elements.discard(element)
        self._readded.pop(element, None)
        self._changed(self.elements, old)
        return True

    def remove(self, element: Any) -> None:
        """Remove ``element``, raising ``KeyError`` if it is absent."""
        if not self.discard(element):
            raise KeyError(element)

    def update(self, elements: Iterable[Any]) -> None:
        """Add every element of ``elements`` as one change."""
        new = set(self._elements)
        for element in elements:
            self.codec.encode(element)
            new.add(element)
        self._replace(new)

    def clear(self) -> None:
        self._replace(set())

    def _replace(self, new: set) -> None:
        if new == self._elements:
            return
        old = self.elements
        added = new - self._elements
        self._elements = new
        self._readded = {e: t for e, t in self._readded.items() if e in new}
        self._note_added(added)
        self._changed(self.elements, old)

    def _note_added(self, added: Iterable[Any]) -> None:
        for element in added:
            if element in self._baseline:
                self._tick += 1
                self._readded[element] = self._tick

    def _encode_all(self, elements: Iterable[Any]) -> set[str]:
        return {self.codec.encode(e) for e in elements}

    @property
    def dirty(self) -> bool:
        return self._elements != self._baseline or bool(self._readded)

    def snapshot(self) -> frozenset:
        return self.elements

    def wire_payload(self) -> list[dict[str, str]]:
        ops = diff_sets(
            self._encode_all(self._baseline),
            self._encode_all(self._elements),
            self._encode_all(self._readded),
        )
        return ops_to_wire(ops)

    def offer(self) -> tuple[frozenset, dict[Any, int]]:
        return self.elements, dict(self._readded)

    def commit(self, offered: tuple[frozenset, dict[Any, int]]) -> None:
        elements, readded = offered
        self._baseline = frozenset(elements)
        # A re-add made after the offer is still pending.
        self._readded = {
            e: t
            for e, t in self._readded.items()
            if readded.get(e) != t and e in self._baseline
        }

    def plan_merge(self, payload: Any) -> MergePlan:
        try:
            ops = ops_from_wire(payload)
        except FormatError as e:
            raise FormatError(str(e), key=self.key) from e
        encoded = apply_set_ops(self._encode_all(self._baseline), ops)
        server = frozenset(self._decode(self.codec.decode, raw) for raw in encoded)
        if not self.dirty:
            return MergePlan(baseline=server, value=server)

        server_adds = frozenset(
            self._decode(self.codec.decode, raw) for raw in added_elements(ops) & encoded
        )
        merged = frozenset(self.resolver.resolve(
            self._baseline,
            self.elements,
            server,
            local_adds=self.readded,
            server_adds=server_adds,
        ))
        pending = frozenset(
            e for e in self._readded if e in merged and e in server and e not in server_adds
        )
        logger.debug(
            "%s: merged %d local / %d server elements -> %d via %r",
            self.key, len(self._elements), len(server), len(merged), self.resolver,
        )
        return MergePlan(baseline=server, value=merged, pending=pending)

    def apply_merge(self, plan: MergePlan) -> None:
        old = self.elements
        self._baseline = frozenset(plan.baseline)
        self._elements = set(plan.value)
        self._readded = {e: t for e, t in self._readded.items() if e in plan.pending}
        if old != plan.value:
            self._changed(self.elements, old)

    def encode_value(self) -> str:
        return encode_set(self._elements, self.codec)

    def encode_baseline(self) -> str:
        return encode_set(self._baseline, self.codec)

    def encode_pending(self) -> str | None:
        return encode_set(self._readded, self.codec) if self._readded else None

    def load(
        self, raw_value: str | None, raw_baseline: str | None, raw_pending: str | None = None
    ) -> None:
        def decode(raw: str) -> set:
            return decode_set(raw, self.codec)

        elements = set() if raw_value is None else self._decode(decode, raw_value)
        if raw_baseline is None:
            baseline = frozenset(elements)
        else:
            baseline = frozenset(self._decode(decode, raw_baseline))
        pending = set() if raw_pending is None else self._decode(decode, raw_pending)
        self._elements = elements
        self._baseline = baseline
        self._readded = {e: 0 for e in pending if e in elements and e in baseline}

    def __contains__(self, element: object) -> bool:
        return element in self._elements

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._elements))

    def __len__(self) -> int:
        return len(self._elements)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SetField):
            return self._elements == other._elements
        if isinstance(other, (set, frozenset)):
            return self._elements == other
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"SetField({self.key!r}, elements={sorted(self._elements, key=repr)!r})"


class MapField(Field[dict]):
    """A map field merged key by key.

    Like ``SetField``, a key removed and then written back with its
    baseline value is remembered and offered as a put.

    Args:
        key: Field name.
        key_codec: Codec for map keys.
        value_codec: Codec for map values.
        resolver: Map merge policy.
    """

    def __init__(self, key: str, key_codec: Codec, value_codec: Codec, resolver: MapResolver):
        super().__init__(key)
        self.key_codec = key_codec
        self.value_codec = value_codec
        self.resolver = resolver
        self._entries: dict = {}
        self._baseline: dict = {}
        # key -> tick of the put() that restored it after a removal
        self._reput: dict[Any, int] = {}
        self._tick = 0

    def get(self, k: Any, default: Any = None) -> Any:
        return self._entries.get(k, default)

    def put(self, k: Any, v: Any) -> None:
        self.key_codec.encode(k)
        self.value_codec.encode(v)
        if k in self._entries and self._entries[k] == v:
            return
        old = self.as_dict()
        restored = k not in self._entries and k in self._baseline
        self._entries[k] = v
        if restored and self._same(self._baseline[k], v):
            self._tick += 1
            self._reput[k] = self._tick
        else:
            self._reput.pop(k, None)
        self._changed(self.as_dict(), old)

    def remove(self, k: Any) -> Any:
        """Remove ``k`` and return its value, raising ``KeyError`` if absent."""
        if k not in self._entries:
            raise KeyError(k)
        old = self.as_dict()
        value = self._entries.pop(k)
        self._reput.pop(k, None)
        self._changed(self.as_dict(), old)
        return value

    def pop(self, k: Any, default: Any = None) -> Any:
        if k not in self._entries:
            return default
        return self.remove(k)

    def clear(self) -> None:
        if not self._entries:
            return
        old = self.as_dict()
        self._entries = {}
        self._reput = {}
        self._changed({}, old)

    def keys(self):
        return self._entries.keys()

    def values(self):
        return self._entries.values()

    def items(self):
        return self._entries.items()

    def as_dict(self) -> dict:
        return dict(self._entries)

    @property
    def baseline(self) -> dict:
        return dict(self._baseline)

    @property
    def reput(self) -> frozenset:
        """Keys removed and put back with their baseline value since the last sync."""
        return frozenset(self._reput)

    def _same(self, a: Any, b: Any) -> bool:
        return self.value_codec.encode(a) == self.value_codec.encode(b)

    def _is_reput(self, k: Any, baseline: Mapping[Any, Any]) -> bool:
        return k in baseline and k in self._entries and self._same(baseline[k], self._entries[k])

    def _encode_entries(self, entries: Mapping[Any, Any]) -> dict[str, str]:
        return {self.key_codec.encode(k): self.value_codec.encode(v) for k, v in entries.items()}

    def _decode_entries(self, encoded: Mapping[str, str]) -> dict:
        return {
            self._decode(self.key_codec.decode, k): self._decode(self.value_codec.decode, v)
            for k, v in encoded.items()
        }

    @property
    def dirty(self) -> bool:
        if self._reput:
            return True
        return self._encode_entries(self._entries) != self._encode_entries(self._baseline)

    def snapshot(self) -> dict:
        return self.as_dict()

    def wire_payload(self) -> list[dict[str, str]]:
        ops = diff_maps(
            self._encode_entries(self._baseline),
            self._encode_entries(self._entries),
            [self.key_codec.encode(k) for k in self._reput],
        )
        return ops_to_wire(ops)

    def offer(self) -> tuple[dict, dict[Any, int]]:
        return self.as_dict(), dict(self._reput)

    def commit(self, offered: tuple[dict, dict[Any, int]]) -> None:
        entries, reput = offered
        self._baseline = dict(entries)
        self._reput = {
            k: t
            for k, t in self._reput.items()
            if reput.get(k) != t and self._is_reput(k, self._baseline)
        }

    def plan_merge(self, payload: Any) -> MergePlan:
        try:
            ops = ops_from_wire(payload)
            encoded = apply_map_ops(self._encode_entries(self._baseline), ops)
        except FormatError as e:
            raise FormatError(str(e), key=self.key) from e
        server = self._decode_entries(encoded)
        if not self.dirty:
            return MergePlan(baseline=server, value=server)

        server_puts = frozenset(
            self._decode(self.key_codec.decode, raw)
            for raw in added_elements(ops) & encoded.keys()
        )
        merged = self.resolver.resolve(
            self._baseline,
            self._entries,
            server,
            local_puts=self.reput,
            server_puts=server_puts,
        )
        pending = frozenset(
            k for k in self._reput
            if k in merged and k in server and k not in server_puts
            and self._same(merged[k], server[k])
        )
        logger.debug(
            "%s: merged %d local / %d server keys -> %d via %r",
            self.key, len(self._entries), len(server), len(merged), self.resolver,
        )
        return MergePlan(baseline=server, value=dict(merged), pending=pending)

    def apply_merge(self, plan: MergePlan) -> None:
        old = self.as_dict()
        self._baseline = dict(plan.baseline)
        self._entries = dict(plan.value)
        self._reput = {k: t for k, t in self._reput.items() if k in plan.pending}
        if old != plan.value:
            self._changed(self.as_dict(), old)

    def encode_value(self) -> str:
        return encode_map(self._entries, self.key_codec, self.value_codec)

    def encode_baseline(self) -> str:
        return encode_map(self._baseline, self.key_codec, self.value_codec)

    def encode_pending(self) -> str | None:
        return encode_set(self._reput, self.key_codec) if self._reput else None

    def load(
        self, raw_value: str | None, raw_baseline: str | None, raw_pending: str | None = None
    ) -> None:
        def decode(raw: str) -> dict:
            return decode_map(raw, self.key_codec, self.value_codec)

        entries = {} if raw_value is None else self._decode(decode, raw_value)
        baseline = dict(entries) if raw_baseline is None else self._decode(decode, raw_baseline)
        pending = set() if raw_pending is None else self._decode(
            lambda raw: decode_set(raw, self.key_codec), raw_pending
        )
        self._entries = entries
        self._baseline = baseline
        self._reput = {k: 0 for k in pending if self._is_reput(k, baseline)}

    def __getitem__(self, k: Any) -> Any:
        return self._entries[k]

    def __setitem__(self, k: Any, v: Any) -> None:
        self.put(k, v)

    def __delitem__(self, k: Any) -> None:
        self.remove(k)

    def __contains__(self, k: object) -> bool:
        return k in self._entries

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, MapField):
            return self._entries == other._entries
        if isinstance(other, Mapping):
            return self._entries == dict(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"MapField({self.key!r}, entries={self._entries!r})"
