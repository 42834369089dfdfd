"""SQLite persistence for simulation runs.

Each aggregated run is stored with enough metadata (board, seed, trial count)
to reproduce it exactly; move-count histograms go in a side table.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from snakes_mc.board import BoardConfig
from snakes_mc.reduction import AggregateResult


@dataclass
class RunRecord:
    id: int
    kind: str
    reduction: str
    value: float
    trials: int
    workers: int
    seed: int
    backend: str
    failures: int
    board: dict | None
    created_at: str


class RunsDB:
    """Thin wrapper around a SQLite database of aggregated runs."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.path)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()

    def _create_tables(self) -> None:
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS runs (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                kind        TEXT NOT NULL,
                reduction   TEXT NOT NULL,
                value       REAL,
                trials      INTEGER NOT NULL,
                workers     INTEGER NOT NULL,
                seed        INTEGER NOT NULL,
                backend     TEXT NOT NULL,
                failures    INTEGER NOT NULL DEFAULT 0,
                board       TEXT,
                created_at  TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            CREATE TABLE IF NOT EXISTS histograms (
                run_id      INTEGER NOT NULL REFERENCES runs(id),
                moves       INTEGER NOT NULL,
                count       INTEGER NOT NULL,
                PRIMARY KEY (run_id, moves)
            );
        """)
        self._conn.commit()

    def record_run(
        self,
        kind: str,
        result: AggregateResult,
        workers: int,
        seed: int,
        backend: str,
        board: BoardConfig | None = None,
    ) -> int:
        """Record an aggregated run. Returns the run id."""
        cur = self._conn.execute(
            "INSERT INTO runs (kind, reduction, value, trials, workers, seed, "
            "backend, failures, board) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (kind, result.reduction, result.value, result.trials, workers, seed,
             backend, len(result.failures),
             json.dumps(board.to_dict()) if board is not None else None),
        )
        self._conn.commit()
        return cur.lastrowid  # type: ignore[return-value]

    def record_histogram(self, run_id: int, histogram: Mapping[int, int]) -> None:
        self._conn.executemany(
            "INSERT OR REPLACE INTO histograms (run_id, moves, count) VALUES (?, ?, ?)",
            [(run_id, moves, count) for moves, count in sorted(histogram.items())],
        )
        self._conn.commit()

    def list_runs(self) -> list[RunRecord]:
        """Return all runs, oldest first."""
        rows = self._conn.execute(
            "SELECT id, kind, reduction, value, trials, workers, seed, backend, "
            "failures, board, created_at FROM runs ORDER BY id"
        ).fetchall()
        return [_to_record(r) for r in rows]

    def get_run(self, run_id: int) -> RunRecord | None:
        row = self._conn.execute(
            "SELECT id, kind, reduction, value, trials, workers, seed, backend, "
            "failures, board, created_at FROM runs WHERE id = ?",
            (run_id,),
        ).fetchone()
        return _to_record(row) if row else None

    def histogram(self, run_id: int) -> dict[int, int]:
        rows = self._conn.execute(
            "SELECT moves, count FROM histograms WHERE run_id = ? ORDER BY moves",
            (run_id,),
        ).fetchall()
        return {r[0]: r[1] for r in rows}

    def latest_run_with_histogram(self) -> int | None:
        row = self._conn.execute(
            "SELECT MAX(run_id) FROM histograms"
        ).fetchone()
        return row[0] if row else None

    def close(self) -> None:
        self._conn.close()


def _to_record(row: tuple) -> RunRecord:
    return RunRecord(
        id=row[0], kind=row[1], reduction=row[2],
        value=row[3] if row[3] is not None else float("nan"),
        trials=row[4], workers=row[5], seed=row[6], backend=row[7],
        failures=row[8],
        board=json.loads(row[9]) if row[9] else None,
        created_at=row[10],
    )
