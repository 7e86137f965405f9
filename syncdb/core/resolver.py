"""Conflict policies for scalar fields.

A resolver is consulted only when a field has a local pending change and
the server delivers a different value for the same key modified since the
client's baseline version. Policies:

- **TRUE**: true if either side is true ("has happened" flags).
- **FALSE**: true only if both sides are true.
- **INTMAX / LONGMAX**: the larger of the two numbers (high-water marks).
- **SERVER**: the server's value; the local change is discarded.
- **CLIENT**: the local value; it is offered back to the server.

Resolvers are pure: the same inputs always give the same output, so a
conflict can safely be resolved again when a round is retried.

Example::

    from syncdb.core.resolver import INTMAX

    assert INTMAX.resolve(45, 40) == 45
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")


@runtime_checkable
class Resolver(Protocol[T]):
    """Protocol for merging a local pending value with a server value."""

    def resolve(self, local: T, server: T) -> T:
        """Return the merged value.

        Args:
            local: The client's pending (unsynced) value.
            server: The value the server holds for the same key.
        """
        ...


class TrueResolver:
    """Monotone OR: once either side saw ``True`` the result is ``True``."""

    def resolve(self, local: bool, server: bool) -> bool:
        return bool(local) or bool(server)

    def __repr__(self) -> str:
        return "TRUE"


class FalseResolver:
    """Monotone AND: either side reporting ``False`` wins."""

    def resolve(self, local: bool, server: bool) -> bool:
        return bool(local) and bool(server)

    def __repr__(self) -> str:
        return "FALSE"


class MaxResolver:
    """Keeps the numerically larger value.

    Args:
        name: Label used in ``repr`` (``INTMAX`` or ``LONGMAX``).
    """

    def __init__(self, name: str = "MAX"):
        self._name = name

    def resolve(self, local: int, server: int) -> int:
        return local if local >= server else server

    def __repr__(self) -> str:
        return self._name


class ServerResolver:
    """The server's value always wins."""

    def resolve(self, local: T, server: T) -> T:
        return server

    def __repr__(self) -> str:
        return "SERVER"


class ClientResolver:
    """The local pending value always wins and is re-offered to the server."""

    def resolve(self, local: T, server: T) -> T:
        return local

    def __repr__(self) -> str:
        return "CLIENT"


class CustomResolver:
    """Resolver wrapping a user-supplied function.

    The function must be deterministic in its two arguments.

    Args:
        resolve_fn: Function with signature (local, server) -> value.
        name: Optional label for ``repr``.
    """

    def __init__(self, resolve_fn: Callable[[T, T], T], name: str | None = None):
        self._resolve_fn = resolve_fn
        self._name = name or getattr(resolve_fn, "__name__", "custom")

    def resolve(self, local: T, server: T) -> T:
        return self._resolve_fn(local, server)

    def __repr__(self) -> str:
        return f"CustomResolver({self._name})"


TRUE = TrueResolver()
FALSE = FalseResolver()
INTMAX = MaxResolver("INTMAX")
LONGMAX = MaxResolver("LONGMAX")
SERVER = ServerResolver()
CLIENT = ClientResolver()
