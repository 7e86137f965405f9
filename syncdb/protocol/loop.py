"""Client-side driver for the sync exchange.

Each round sends ``(db.version(), db.get_delta())`` to an endpoint and
feeds the answer back into the database. Rounds repeat while the database
still has unsynced changes::

    IDLE -> REQUESTING -> ACCEPTED -> IDLE     (clean sync, note_sync)
                       -> CONFLICT -> IDLE     (merge, apply_delta)

A clean round ends the loop unless new local edits arrived meanwhile. A
conflict round re-dirties only fields whose merged value differs from the
server's, and the next round offers them to a server the client is now
caught up with. Unless other clients keep advancing the server, the loop
therefore finishes within two rounds. A steady stream of edits can keep
it going; ``SyncConfig.max_rounds`` bounds that.

The endpoint is anything with a ``sync(client_version, delta)`` method
returning a ``SyncResult``: an in-process ``SyncServer`` or a transport
adapter. Use ``run_async`` when ``sync`` is a coroutine. Transport errors
propagate unchanged; the database keeps its dirty state so the caller can
simply run the loop again later.

Example::

    stats = sync(db, server)
    assert not db.has_unsynced_changes()
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from syncdb.protocol.server import SyncResult
from syncdb.tracing.recorder import NullSyncRecorder

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from syncdb.config import SyncConfig
    from syncdb.db import Delta, SyncDB
    from syncdb.tracing.recorder import SyncRecorder

logger = logging.getLogger(__name__)


class SyncLoopError(RuntimeError):
    """The loop hit ``max_rounds`` with changes still pending."""


class SyncState(str, Enum):
    """Where the loop is within a round."""

    IDLE = "idle"
    REQUESTING = "requesting"
    ACCEPTED = "accepted"
    CONFLICT = "conflict"


class SyncEndpoint(Protocol):
    """Anything that answers sync requests."""

    def sync(self, client_version: int, delta: Delta) -> SyncResult | Awaitable[SyncResult]:
        ...


@dataclass(frozen=True)
class SyncLoopStats:
    """Summary of one loop run.

    Attributes:
        rounds: Exchanges performed.
        clean_syncs: Rounds answered with a clean acceptance.
        conflicts: Rounds that required a merge.
        version: Client version when the loop finished.
    """

    rounds: int = 0
    clean_syncs: int = 0
    conflicts: int = 0
    version: int = 0


class SyncLoop:
    """Runs sync rounds for one database against one endpoint.

    Only one loop may drive a given database at a time; the caller is
    responsible for that. A single SyncLoop refuses to be re-entered.

    Args:
        db: Database to synchronize.
        endpoint: Server or transport adapter.
        config: Loop limits. Defaults to ``db.config``.
        recorder: Optional span recorder.
    """

    def __init__(
        self,
        db: SyncDB,
        endpoint: SyncEndpoint,
        config: SyncConfig | None = None,
        recorder: SyncRecorder | None = None,
    ):
        self._db = db
        self._endpoint = endpoint
        self._config = config or db.config
        self._recorder = recorder or NullSyncRecorder()
        self._state = SyncState.IDLE
        self._rounds = 0
        self._clean_syncs = 0
        self._conflicts = 0

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def stats(self) -> SyncLoopStats:
        """Counters for the current (or last) run."""
        return SyncLoopStats(
            rounds=self._rounds,
            clean_syncs=self._clean_syncs,
            conflicts=self._conflicts,
            version=self._db.version(),
        )

    def run_round(self) -> SyncResult:
        """Perform exactly one exchange and apply its result."""
        self._start()
        return self._round()

    def run(self) -> SyncLoopStats:
        """Exchange rounds until the database has no unsynced changes.

        At least one round is always performed so that changes made by
        other clients are pulled even when nothing is pending locally.

        Raises:
            ProtocolError: If the server rejects the client's version.
            FormatError: If the server delivers an undecodable value.
            SyncLoopError: If ``max_rounds`` is exceeded.
        """
        self._start()
        while True:
            self._round()
            if not self._db.has_unsynced_changes():
                return self._finish()
            self._check_limit()

    async def run_async(self) -> SyncLoopStats:
        """Like ``run`` but awaits endpoints whose ``sync`` is a coroutine.

        Local edits made while a request is in flight are offered in the
        next round.
        """
        self._start()
        while True:
            version, delta = self._request()
            try:
                result = self._endpoint.sync(version, delta)
                if inspect.isawaitable(result):
                    result = await result
            except BaseException:
                self._state = SyncState.IDLE
                raise
            self._receive(result)
            if not self._db.has_unsynced_changes():
                return self._finish()
            self._check_limit()

    # -- round steps ---------------------------------------------------------

    def _start(self) -> None:
        if self._state is not SyncState.IDLE:
            raise RuntimeError(f"sync loop already running (state={self._state.value})")
        self._rounds = 0
        self._clean_syncs = 0
        self._conflicts = 0

    def _round(self) -> SyncResult:
        version, delta = self._request()
        try:
            result = self._endpoint.sync(version, delta)
            if inspect.isawaitable(result):
                if inspect.iscoroutine(result):
                    result.close()
                raise TypeError("endpoint returned an awaitable; use run_async()")
        except BaseException:
            self._state = SyncState.IDLE
            raise
        self._receive(result)
        return result

    def _request(self) -> tuple[int, Delta]:
        self._state = SyncState.REQUESTING
        self._rounds += 1
        version = self._db.version()
        delta = self._db.get_delta()
        self._recorder.record(
            kind="sync.request", round=self._rounds, version=version, keys=sorted(delta)
        )
        logger.debug("Round %d: sending %d keys at version %d", self._rounds, len(delta), version)
        return version, delta

    def _receive(self, result: Any) -> None:
        if not isinstance(result, SyncResult):
            self._state = SyncState.IDLE
            raise TypeError(f"endpoint must return SyncResult, got {type(result).__name__}")
        try:
            if result.clean_sync:
                self._state = SyncState.ACCEPTED
                self._db.note_sync(result.version)
                self._clean_syncs += 1
                self._recorder.record(
                    kind="sync.accepted", round=self._rounds, version=result.version
                )
                logger.info("Round %d accepted at version %d", self._rounds, result.version)
            else:
                self._state = SyncState.CONFLICT
                self._db.apply_delta(result.version, result.delta)
                self._conflicts += 1
                pending = self._db.dirty_keys()
                self._recorder.record(
                    kind="sync.conflict",
                    round=self._rounds,
                    version=result.version,
                    keys=sorted(result.delta),
                    pending=pending,
                )
                logger.info(
                    "Round %d merged %d keys at version %d",
                    self._rounds, len(result.delta), result.version,
                )
        finally:
            self._state = SyncState.IDLE

    def _check_limit(self) -> None:
        limit = self._config.max_rounds
        if limit is not None and self._rounds >= limit:
            pending = self._db.dirty_keys()
            logger.warning("Giving up after %d rounds; still pending: %s", self._rounds, pending)
            raise SyncLoopError(f"changes still pending after {self._rounds} rounds: {pending}")

    def _finish(self) -> SyncLoopStats:
        stats = self.stats
        logger.info(
            "Sync finished at version %d after %d rounds (%d conflicts)",
            stats.version, stats.rounds, stats.conflicts,
        )
        return stats


def sync(
    db: SyncDB,
    endpoint: SyncEndpoint,
    config: SyncConfig | None = None,
    recorder: SyncRecorder | None = None,
) -> SyncLoopStats:
    """Run a sync loop to completion. See ``SyncLoop.run``."""
    return SyncLoop(db, endpoint, config=config, recorder=recorder).run()


async def sync_async(
    db: SyncDB,
    endpoint: SyncEndpoint,
    config: SyncConfig | None = None,
    recorder: SyncRecorder | None = None,
) -> SyncLoopStats:
    """Run a sync loop to completion, awaiting the endpoint. See ``SyncLoop.run_async``."""
    return await SyncLoop(db, endpoint, config=config, recorder=recorder).run_async()
