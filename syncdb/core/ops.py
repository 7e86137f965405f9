"""Element-level operations for set and map fields.

Collections never travel as whole snapshots. A client offers the
operations that turn its baseline into its current contents, and the
server hands back the operations it accepted since the client's baseline.
Operations work on encoded strings so they can be stored and compared
without knowing the element type.

Wire form::

    {"op": "add", "element": "\\"sword\\""}
    {"op": "remove", "element": "\\"shield\\""}
    {"op": "add", "element": "\\"gold\\"", "value": "40"}   # map put
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from syncdb.core.codec import FormatError

ADD = "add"
REMOVE = "remove"


@dataclass(frozen=True)
class ElementOp:
    """A single add or remove of an encoded set element or map key.

    Attributes:
        op: ``"add"`` or ``"remove"``.
        element: Encoded element (sets) or encoded key (maps).
        value: Encoded value for map additions, ``None`` otherwise.
    """

    op: str
    element: str
    value: str | None = None

    def __post_init__(self) -> None:
        if self.op not in (ADD, REMOVE):
            raise ValueError(f"op must be {ADD!r} or {REMOVE!r}, got {self.op!r}")

    def to_dict(self) -> dict[str, str]:
        payload = {"op": self.op, "element": self.element}
        if self.value is not None:
            payload["value"] = self.value
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> ElementOp:
        """Parse a wire operation.

        Raises:
            FormatError: If the payload is not a well-formed operation.
        """
        if not isinstance(payload, Mapping):
            raise FormatError(f"operation must be an object, got {payload!r}")
        op = payload.get("op")
        element = payload.get("element")
        value = payload.get("value")
        if op not in (ADD, REMOVE) or not isinstance(element, str):
            raise FormatError(f"malformed operation {payload!r}")
        if value is not None and not isinstance(value, str):
            raise FormatError(f"operation value must be a string: {payload!r}")
        return cls(op=op, element=element, value=value)


def ops_to_wire(ops: Iterable[ElementOp]) -> list[dict[str, str]]:
    return [op.to_dict() for op in ops]


def ops_from_wire(payload: Any) -> list[ElementOp]:
    """Parse a list of wire operations, raising ``FormatError`` on bad input."""
    if not isinstance(payload, list):
        raise FormatError(f"expected a list of operations, got {payload!r}")
    return [ElementOp.from_dict(item) for item in payload]


def diff_sets(
    baseline: Iterable[str], current: Iterable[str], readded: Iterable[str] = ()
) -> list[ElementOp]:
    """Operations turning ``baseline`` into ``current``, sorted by element.

    Elements in ``readded`` are held by both states but were removed and
    added back; they are sent as additions too.
    """
    before = set(baseline)
    after = set(current)
    ops = [ElementOp(ADD, e) for e in (after - before) | (set(readded) & after & before)]
    ops.extend(ElementOp(REMOVE, e) for e in before - after)
    ops.sort(key=lambda o: (o.element, o.op))
    return ops


def apply_set_ops(elements: Iterable[str], ops: Iterable[ElementOp]) -> set[str]:
    """Apply ``ops`` in order to a copy of ``elements``."""
    result = set(elements)
    for op in ops:
        if op.op == ADD:
            result.add(op.element)
        else:
            result.discard(op.element)
    return result


def diff_maps(
    baseline: Mapping[str, str], current: Mapping[str, str], reput: Iterable[str] = ()
) -> list[ElementOp]:
    """Operations turning ``baseline`` into ``current``, sorted by key.

    Keys in ``reput`` were written back to their baseline value and are
    sent as puts anyway.
    """
    reput = set(reput)
    ops = [
        ElementOp(ADD, k, v)
        for k, v in current.items()
        if k not in baseline or baseline[k] != v or k in reput
    ]
    ops.extend(ElementOp(REMOVE, k) for k in baseline if k not in current)
    ops.sort(key=lambda o: (o.element, o.op))
    return ops


def apply_map_ops(entries: Mapping[str, str], ops: Iterable[ElementOp]) -> dict[str, str]:
    """Apply ``ops`` in order to a copy of ``entries``.

    Raises:
        FormatError: If an addition carries no value.
    """
    result = dict(entries)
    for op in ops:
        if op.op == ADD:
            if op.value is None:
                raise FormatError(f"map addition for {op.element!r} has no value")
            result[op.element] = op.value
        else:
            result.pop(op.element, None)
    return result


def added_elements(ops: Iterable[ElementOp]) -> set[str]:
    """Encoded elements or keys named by any addition in ``ops``."""
    return {op.element for op in ops if op.op == ADD}
