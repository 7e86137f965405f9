"""Trace recorders for sync loop instrumentation.

A SyncLoop reports each request it sends and each answer it receives as
a span. Recorders decide what happens to them: keep them in memory for
tests and debugging, or drop them.

Span kinds:
    sync.request: a delta was sent (data: keys)
    sync.accepted: the server accepted it (data: version)
    sync.conflict: the client merged a conflict delta (data: keys, pending)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

import pandas as pd


class SyncRecorder(Protocol):
    """Protocol for recording sync loop spans."""

    def record(self, *, kind: str, round: int, version: int, **data: Any) -> None:
        """Record one span.

        Args:
            kind: Span category (e.g. "sync.request").
            round: 1-based round number within the current loop run.
            version: Client version at the time of the span.
            **data: Additional structured data for the span.
        """


@dataclass
class InMemorySyncRecorder:
    """Stores spans in memory for later inspection."""

    spans: list[dict[str, Any]] = field(default_factory=list)

    def record(self, *, kind: str, round: int, version: int, **data: Any) -> None:
        span: dict[str, Any] = {"kind": kind, "round": round, "version": version}
        if data:
            span["data"] = data
        self.spans.append(span)

    def clear(self) -> None:
        self.spans.clear()

    def filter_by_kind(self, kind: str) -> list[dict[str, Any]]:
        return [s for s in self.spans if s["kind"] == kind]

    def to_dataframe(self) -> pd.DataFrame:
        """Spans as a DataFrame with ``kind``, ``round``, ``version`` and one
        column per data attribute."""
        rows = [
            {"kind": s["kind"], "round": s["round"], "version": s["version"], **s.get("data", {})}
            for s in self.spans
        ]
        return pd.DataFrame(rows, columns=None if rows else ["kind", "round", "version"])


@dataclass
class NullSyncRecorder:
    """Discards every span."""

    def record(self, *, kind: str, round: int, version: int, **data: Any) -> None:
        pass
