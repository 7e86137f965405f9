"""Conflict policies for set and map fields.

Collection merges are three-way: each policy sees the last state both
sides agreed on (``baseline``), the client's current contents (``local``)
and the server's contents after every accepted operation (``server``).
Comparing each side against the baseline tells which side added or
removed an element, so merges act per element instead of per snapshot.

A state comparison cannot see an element that was removed and then added
back: it looks untouched. Such explicit additions are passed separately
(``local_adds`` / ``server_adds`` for sets, ``local_puts`` /
``server_puts`` for maps) so an addition still beats a concurrent removal.

Set policies:

- **UNION**: an element added on either side is kept; a removal is honored
  unless the other side added the same element.
- **INTERSECTION**: an element survives only if both sides hold it.
- **SERVER**: the server's contents replace the local ones.

Map policies merge per key. ``MapResolver.per_key(resolver)`` takes the
side that changed a key and falls back to a scalar ``Resolver`` when both
sides changed it; ``MapResolver.SERVER`` takes the server's map wholesale.

Example::

    from syncdb.core.set_resolver import UNION

    merged = UNION.resolve(
        baseline=frozenset({"one", "two"}),
        local=frozenset({"one", "two", "four"}),
        server=frozenset({"one", "two", "three"}),
    )
    assert merged == {"one", "two", "three", "four"}
"""

from __future__ import annotations

from collections.abc import Mapping, Set
from typing import Any, Protocol, runtime_checkable

from syncdb.core.resolver import Resolver

_MISSING = object()
_NONE: frozenset = frozenset()


@runtime_checkable
class SetResolver(Protocol):
    """Protocol for merging a local set with the server's set."""

    def resolve(
        self,
        baseline: frozenset,
        local: frozenset,
        server: frozenset,
        *,
        local_adds: Set = _NONE,
        server_adds: Set = _NONE,
    ) -> frozenset:
        """Return the merged contents.

        Args:
            baseline: Contents both sides last agreed on.
            local: The client's current contents.
            server: The server's contents after its accepted operations.
            local_adds: Elements the client explicitly added back after
                removing them.
            server_adds: Elements named by an add operation in the server's
                delta.
        """
        ...


class UnionSetResolver:
    """Adds from either side win; removals stick when uncontested."""

    def resolve(
        self,
        baseline: frozenset,
        local: frozenset,
        server: frozenset,
        *,
        local_adds: Set = _NONE,
        server_adds: Set = _NONE,
    ) -> frozenset:
        kept = local & server
        added = (local - baseline) | (server - baseline)
        readded = (local & local_adds) | (server & server_adds)
        return frozenset(kept | added | readded)

    def __repr__(self) -> str:
        return "UNION"


class IntersectionSetResolver:
    """Only elements held by both sides survive."""

    def resolve(
        self,
        baseline: frozenset,
        local: frozenset,
        server: frozenset,
        *,
        local_adds: Set = _NONE,
        server_adds: Set = _NONE,
    ) -> frozenset:
        return frozenset(local & server)

    def __repr__(self) -> str:
        return "INTERSECTION"


class ServerSetResolver:
    """The server's contents win; local pending operations are dropped."""

    def resolve(
        self,
        baseline: frozenset,
        local: frozenset,
        server: frozenset,
        *,
        local_adds: Set = _NONE,
        server_adds: Set = _NONE,
    ) -> frozenset:
        return frozenset(server)

    def __repr__(self) -> str:
        return "SERVER"


UNION = UnionSetResolver()
INTERSECTION = IntersectionSetResolver()
SERVER = ServerSetResolver()


class MapResolver:
    """Merges maps key by key.

    Use the factories instead of instantiating directly:

    - ``MapResolver.per_key(resolver)``: three-way per-key merge, with
      ``resolver`` deciding keys written on both sides.
    - ``MapResolver.SERVER``: the server's map wins wholesale.

    For a key changed on both sides where one side removed it and the other
    wrote a value, the write wins.

    Args:
        value_resolver: Scalar resolver for keys written on both sides, or
            ``None`` to always take the server's map.
    """

    SERVER: MapResolver

    def __init__(self, value_resolver: Resolver | None):
        self._value_resolver = value_resolver

    @classmethod
    def per_key(cls, resolver: Resolver) -> MapResolver:
        return cls(resolver)

    @property
    def value_resolver(self) -> Resolver | None:
        return self._value_resolver

    def resolve(
        self,
        baseline: Mapping[Any, Any],
        local: Mapping[Any, Any],
        server: Mapping[Any, Any],
        *,
        local_puts: Set = _NONE,
        server_puts: Set = _NONE,
    ) -> dict[Any, Any]:
        """Return the merged map.

        Args:
            baseline: Entries both sides last agreed on.
            local: The client's current entries.
            server: The server's entries after its accepted operations.
            local_puts: Keys the client removed and then put back with their
                baseline value.
            server_puts: Keys named by a put operation in the server's delta.
        """
        if self._value_resolver is None:
            return dict(server)

        merged: dict[Any, Any] = {}
        for key in set(baseline) | set(local) | set(server):
            base_v = baseline.get(key, _MISSING)
            local_v = local.get(key, _MISSING)
            server_v = server.get(key, _MISSING)
            local_changed = local_v != base_v or key in local_puts
            server_changed = server_v != base_v or key in server_puts

            if not local_changed:
                chosen = server_v
            elif not server_changed:
                chosen = local_v
            elif local_v is _MISSING:
                chosen = server_v
            elif server_v is _MISSING:
                chosen = local_v
            else:
                chosen = self._value_resolver.resolve(local_v, server_v)

            if chosen is not _MISSING:
                merged[key] = chosen
        return merged

    def __repr__(self) -> str:
        if self._value_resolver is None:
            return "MapResolver.SERVER"
        return f"MapResolver.per_key({self._value_resolver!r})"


MapResolver.SERVER = MapResolver(None)


def as_map_resolver(resolver: MapResolver | Resolver) -> MapResolver:
    """Wrap a scalar resolver for per-key use; pass map resolvers through."""
    if isinstance(resolver, MapResolver):
        return resolver
    if not isinstance(resolver, Resolver):
        raise TypeError(f"expected a Resolver or MapResolver, got {resolver!r}")
    return MapResolver.per_key(resolver)
