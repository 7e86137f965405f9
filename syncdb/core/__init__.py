"""Field types, codecs and conflict policies.

- **Codec**: typed value to persisted string and back (``BOOLEAN``, ``INT``,
  ``LONG``, ``STRING``, ``EnumCodec``).
- **Resolver**: scalar conflict policies (``TRUE``, ``FALSE``, ``INTMAX``,
  ``LONGMAX``, ``SERVER``, ``CLIENT``).
- **SetResolver / MapResolver**: per-element collection policies
  (``UNION``, ``INTERSECTION``, ``SERVER``, ``MapResolver.per_key``).
- **ValueField / SetField / MapField**: the slots a SyncDB is made of.
"""

from syncdb.core import resolver, set_resolver
from syncdb.core.codec import (
    BOOLEAN,
    INT,
    LONG,
    STRING,
    Codec,
    EnumCodec,
    FormatError,
)
from syncdb.core.field import Field, MapField, MergePlan, SetField, ValueField
from syncdb.core.ops import ElementOp
from syncdb.core.resolver import CustomResolver, Resolver
from syncdb.core.set_resolver import MapResolver, SetResolver

__all__ = [
    "BOOLEAN",
    "INT",
    "LONG",
    "STRING",
    "Codec",
    "CustomResolver",
    "ElementOp",
    "EnumCodec",
    "Field",
    "FormatError",
    "MapField",
    "MapResolver",
    "MergePlan",
    "Resolver",
    "SetField",
    "SetResolver",
    "ValueField",
    "resolver",
    "set_resolver",
]
