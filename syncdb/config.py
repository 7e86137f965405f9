"""Runtime settings for SyncDB and the sync loop.

Settings come from code or from the environment, the same way logging
is configured through ``syncdb.configure_from_env``.

Environment variables:
    SYNCDB_MAX_ROUNDS: Upper bound on rounds per sync loop (unset = unbounded)
    SYNCDB_KEY_PREFIX: Prefix for the reserved storage keys
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

ENV_MAX_ROUNDS = "SYNCDB_MAX_ROUNDS"
ENV_KEY_PREFIX = "SYNCDB_KEY_PREFIX"

DEFAULT_KEY_PREFIX = "syncdb."


@dataclass(frozen=True)
class SyncConfig:
    """Settings shared by SyncDB and SyncLoop.

    Attributes:
        max_rounds: Maximum exchanges one sync loop may perform before it
            gives up with ``SyncLoopError``. ``None`` means no limit; a loop
            fed by a steady stream of local edits may then run indefinitely.
        key_prefix: Prefix of the reserved storage keys (version, baselines,
            pending re-additions).
            Lets several databases share one storage.
    """

    max_rounds: int | None = None
    key_prefix: str = DEFAULT_KEY_PREFIX

    def __post_init__(self) -> None:
        if self.max_rounds is not None and self.max_rounds < 1:
            raise ValueError(f"max_rounds must be >= 1, got {self.max_rounds}")
        if not self.key_prefix:
            raise ValueError("key_prefix must not be empty")

    @property
    def version_key(self) -> str:
        return f"{self.key_prefix}version"

    def baseline_key(self, field_key: str) -> str:
        return f"{self.key_prefix}base.{field_key}"

    def pending_key(self, field_key: str) -> str:
        return f"{self.key_prefix}pending.{field_key}"

    def is_reserved(self, key: str) -> bool:
        return key.startswith(self.key_prefix)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SyncConfig:
        """Build a config from ``SYNCDB_*`` environment variables.

        Raises:
            ValueError: If a variable holds an invalid value.
        """
        env = os.environ if environ is None else environ
        raw_rounds = env.get(ENV_MAX_ROUNDS, "").strip()
        max_rounds = None
        if raw_rounds:
            try:
                max_rounds = int(raw_rounds)
            except ValueError:
                raise ValueError(f"{ENV_MAX_ROUNDS} must be an integer, got {raw_rounds!r}") from None
        key_prefix = env.get(ENV_KEY_PREFIX, "") or DEFAULT_KEY_PREFIX
        return cls(max_rounds=max_rounds, key_prefix=key_prefix)
