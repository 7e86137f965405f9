"""Codecs between typed field values and their persisted string form.

A codec must be total and self-inverse for every value its field can
hold: ``decode(encode(v)) == v``. Decoding malformed data raises
``FormatError``; a field whose stored or delivered value cannot be decoded
is corrupt and the error is surfaced, never replaced by a default.

Example::

    from syncdb.core.codec import INT, STRING

    assert INT.decode(INT.encode(42)) == 42
    assert STRING.decode(STRING.encode(None)) is None
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")
K = TypeVar("K")
V = TypeVar("V")
E = TypeVar("E", bound=Enum)

INT_MIN, INT_MAX = -(2**31), 2**31 - 1
LONG_MIN, LONG_MAX = -(2**63), 2**63 - 1


class FormatError(ValueError):
    """Raised when a persisted or wire value cannot be decoded.

    Attributes:
        key: Field key the value belonged to, when known.
    """

    def __init__(self, message: str, key: str | None = None):
        self.key = key
        if key is not None:
            message = f"{key}: {message}"
        super().__init__(message)


@runtime_checkable
class Codec(Protocol[T]):
    """Converts values of one type to and from strings."""

    def encode(self, value: T) -> str:
        """Encode ``value`` as a string."""
        ...

    def decode(self, raw: str) -> T:
        """Decode a string produced by ``encode``.

        Raises:
            FormatError: If ``raw`` is not a valid encoding.
        """
        ...


class BooleanCodec:
    """Encodes booleans as ``"true"`` / ``"false"``."""

    def encode(self, value: bool) -> str:
        if not isinstance(value, bool):
            raise TypeError(f"expected bool, got {type(value).__name__}")
        return "true" if value else "false"

    def decode(self, raw: str) -> bool:
        if raw == "true":
            return True
        if raw == "false":
            return False
        raise FormatError(f"invalid boolean {raw!r}")

    def __repr__(self) -> str:
        return "BOOLEAN"


class IntegerCodec:
    """Encodes integers in base 10 within a fixed signed range.

    Args:
        name: Label used in ``repr`` and error messages.
        min_value: Smallest representable value.
        max_value: Largest representable value.
    """

    def __init__(self, name: str, min_value: int, max_value: int):
        self._name = name
        self._min = min_value
        self._max = max_value

    def encode(self, value: int) -> str:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"{self._name} expects int, got {type(value).__name__}")
        if not self._in_range(value):
            raise ValueError(f"{value} outside {self._name} range [{self._min}, {self._max}]")
        return str(value)

    def decode(self, raw: str) -> int:
        try:
            value = int(raw)
        except (TypeError, ValueError):
            raise FormatError(f"invalid {self._name.lower()} {raw!r}") from None
        if str(value) != raw:
            raise FormatError(f"non-canonical {self._name.lower()} {raw!r}")
        if not self._in_range(value):
            raise FormatError(f"{value} outside {self._name} range [{self._min}, {self._max}]")
        return value

    def _in_range(self, value: int) -> bool:
        return self._min <= value <= self._max

    def __repr__(self) -> str:
        return self._name


class StringCodec:
    """Encodes nullable strings as JSON (``"text"`` or ``null``)."""

    def encode(self, value: str | None) -> str:
        if value is not None and not isinstance(value, str):
            raise TypeError(f"expected str or None, got {type(value).__name__}")
        return json.dumps(value)

    def decode(self, raw: str) -> str | None:
        try:
            value = json.loads(raw)
        except (TypeError, ValueError):
            raise FormatError(f"invalid string encoding {raw!r}") from None
        if value is not None and not isinstance(value, str):
            raise FormatError(f"expected string or null, got {raw!r}")
        return value

    def __repr__(self) -> str:
        return "STRING"


class EnumCodec(Generic[E]):
    """Encodes members of an ``Enum`` by name.

    Example::

        class Difficulty(Enum):
            EASY = 1
            HARD = 2

        codec = EnumCodec(Difficulty)
        assert codec.encode(Difficulty.HARD) == "HARD"
    """

    def __init__(self, enum_cls: type[E]):
        self._enum_cls = enum_cls

    def encode(self, value: E) -> str:
        if not isinstance(value, self._enum_cls):
            raise TypeError(f"expected {self._enum_cls.__name__}, got {value!r}")
        return value.name

    def decode(self, raw: str) -> E:
        try:
            return self._enum_cls[raw]
        except KeyError:
            raise FormatError(f"no {self._enum_cls.__name__} member named {raw!r}") from None

    def __repr__(self) -> str:
        return f"EnumCodec({self._enum_cls.__name__})"


BOOLEAN = BooleanCodec()
INT = IntegerCodec("INT", INT_MIN, INT_MAX)
LONG = IntegerCodec("LONG", LONG_MIN, LONG_MAX)
STRING = StringCodec()


# Collections persist as JSON documents of element encodings, sorted so
# equal containers always produce the same string.


def _load_json(raw: str, expected: type) -> Any:
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        raise FormatError(f"invalid collection encoding {raw!r}") from None
    if not isinstance(data, expected):
        raise FormatError(f"expected JSON {expected.__name__}, got {raw!r}")
    return data


def encode_set(elements: Iterable[T], codec: Codec[T]) -> str:
    """Encode a set as a sorted JSON list of element encodings."""
    return json.dumps(sorted(codec.encode(e) for e in elements))


def decode_set(raw: str, codec: Codec[T]) -> set[T]:
    """Inverse of ``encode_set``."""
    items = _load_json(raw, list)
    if not all(isinstance(item, str) for item in items):
        raise FormatError(f"set elements must be strings: {raw!r}")
    return {codec.decode(item) for item in items}


def encode_map(entries: Mapping[K, V], key_codec: Codec[K], value_codec: Codec[V]) -> str:
    """Encode a mapping as a JSON object keyed by encoded keys."""
    encoded = {key_codec.encode(k): value_codec.encode(v) for k, v in entries.items()}
    return json.dumps(encoded, sort_keys=True)


def decode_map(raw: str, key_codec: Codec[K], value_codec: Codec[V]) -> dict[K, V]:
    """Inverse of ``encode_map``."""
    items = _load_json(raw, dict)
    result: dict[K, V] = {}
    for k, v in items.items():
        if not isinstance(v, str):
            raise FormatError(f"map values must be strings: {raw!r}")
        result[key_codec.decode(k)] = value_codec.decode(v)
    return result
