"""Several game clients editing offline and syncing through one server.

Each client plays for a while without a connection, then syncs. Scores
are high-water marks, unlocked levels accumulate, and best times keep
the fastest run per level, so every client ends with the same state no
matter the order in which they reconnect.

## Architecture

```
  Client-0 ──┐
  Client-1 ──┼──► SyncServer (version, per-key history)
  Client-2 ──┘
     │
  MemoryStorage (values + baselines + version)
```

## Key Observations

- A client that was offline while others synced needs a conflict round
  before its own changes are accepted.
- Conflict rounds only re-send fields where the local value beat the
  server's; everything else is taken from the server silently.
- After a final sync sweep every client holds identical data.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd

from syncdb import (
    BOOLEAN,
    INT,
    STRING,
    CustomResolver,
    InMemorySyncRecorder,
    MemoryStorage,
    SyncDB,
    SyncServer,
    resolver,
    set_resolver,
    sync,
)

LEVELS = ["forest", "cave", "desert", "castle", "sky", "abyss"]

FASTEST = CustomResolver(min, name="FASTEST")


# =============================================================================
# Client schema
# =============================================================================


class GameSave(SyncDB):
    def __init__(self, storage):
        super().__init__(storage)
        self.tutorial_done = self.value("tutorialDone", False, BOOLEAN, resolver.TRUE)
        self.high_score = self.value("highScore", 0, INT, resolver.INTMAX)
        self.unlocked = self.set("unlocked", STRING, set_resolver.UNION)
        self.best_times = self.map("bestTimes", STRING, INT, FASTEST)


@dataclass
class Client:
    name: str
    save: GameSave
    recorder: InMemorySyncRecorder = field(default_factory=InMemorySyncRecorder)


@dataclass
class RunResult:
    clients: list[Client]
    server: SyncServer
    log: pd.DataFrame


# =============================================================================
# Simulation
# =============================================================================


def play_session(save: GameSave, rng: random.Random) -> None:
    """A few minutes of offline play."""
    save.tutorial_done.update(True)
    save.high_score.update(max(save.high_score.value, rng.randint(0, 10_000)))
    for level in rng.sample(LEVELS, k=rng.randint(1, 3)):
        save.unlocked.add(level)
        run = rng.randint(30, 300)
        best = save.best_times.get(level)
        if best is None or run < best:
            save.best_times.put(level, run)


def run_sessions(num_clients: int = 3, sessions: int = 8, seed: int = 7) -> RunResult:
    rng = random.Random(seed)
    server = SyncServer()
    clients = [Client(f"client-{i}", GameSave(MemoryStorage())) for i in range(num_clients)]

    rows = []
    for session in range(sessions):
        online = rng.sample(clients, k=rng.randint(1, num_clients))
        for client in clients:
            play_session(client.save, rng)
        for client in online:
            stats = sync(client.save, server, recorder=client.recorder)
            rows.append({
                "session": session,
                "client": client.name,
                "rounds": stats.rounds,
                "conflicts": stats.conflicts,
                "version": stats.version,
            })

    # Final sweep: everyone reconnects, twice so late merges propagate.
    for _ in range(2):
        for client in clients:
            stats = sync(client.save, server, recorder=client.recorder)
            rows.append({
                "session": sessions,
                "client": client.name,
                "rounds": stats.rounds,
                "conflicts": stats.conflicts,
                "version": stats.version,
            })

    return RunResult(clients=clients, server=server, log=pd.DataFrame(rows))


# =============================================================================
# Summary
# =============================================================================


def print_summary(result: RunResult) -> None:
    print("\n" + "=" * 60)
    print("OFFLINE CLIENTS: SYNC SUMMARY")
    print("=" * 60)

    per_client = result.log.groupby("client")[["rounds", "conflicts"]].sum()
    print("\nRounds and conflicts per client:")
    print(per_client.to_string())

    s = result.server.stats
    print(
        f"\nServer: version {result.server.version}, {s.requests} requests, "
        f"{s.accepted} accepted, {s.conflicts} conflicts, {s.no_ops} no-ops"
    )

    snapshots = [c.save.snapshot() for c in result.clients]
    converged = all(snap == snapshots[0] for snap in snapshots)
    print(f"\nConverged: {converged}")
    final = snapshots[0]
    print(f"  High score: {final['highScore']}")
    print(f"  Unlocked:   {sorted(final['unlocked'])}")
    print(f"  Best times: {dict(sorted(final['bestTimes'].items()))}")

    spans = pd.concat(
        [c.recorder.to_dataframe().assign(client=c.name) for c in result.clients],
        ignore_index=True,
    )
    print("\nSpan counts:")
    print(spans.groupby("kind").size().to_string())
    print("=" * 60)


# =============================================================================
# Visualization
# =============================================================================


def visualize_results(result: RunResult, output_dir: Path) -> None:
    """Plot rounds per sync for each client."""
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    output_dir.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots(figsize=(10, 5))
    for name, group in result.log.groupby("client"):
        ax.plot(group["version"], group["rounds"], marker="o", label=name)

    ax.set_xlabel("Client version after sync")
    ax.set_ylabel("Rounds")
    ax.set_title("Rounds needed per sync")
    ax.legend()
    ax.grid(True, alpha=0.2)

    fig.tight_layout()
    path = output_dir / "offline_clients.png"
    fig.savefig(path, dpi=150)
    plt.close(fig)
    print(f"Saved: {path}")


# =============================================================================
# Entry Point
# =============================================================================


if __name__ == "__main__":
    import argparse

    import syncdb

    parser = argparse.ArgumentParser(description="Offline clients syncing demo")
    parser.add_argument("--clients", type=int, default=3)
    parser.add_argument("--sessions", type=int, default=8)
    parser.add_argument("--seed", type=int, default=7)
    parser.add_argument("--output", type=str, default="output/offline_clients")
    parser.add_argument("--no-viz", action="store_true")
    args = parser.parse_args()

    syncdb.configure_from_env()

    print("Running offline clients demo...")
    print(f"  Clients: {args.clients} | Sessions: {args.sessions} | Seed: {args.seed}")

    result = run_sessions(num_clients=args.clients, sessions=args.sessions, seed=args.seed)
    print_summary(result)

    if not args.no_viz:
        visualize_results(result, Path(args.output))
