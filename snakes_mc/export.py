"""Export run history to JSON."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path


def export_runs(db_path: Path | str) -> list[dict]:
    """Read all runs from the DB and return them as a list of dicts."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    rows = conn.execute(
        "SELECT id, kind, reduction, value, trials, workers, seed, backend, "
        "failures, board, created_at FROM runs ORDER BY id"
    ).fetchall()
    conn.close()

    runs = []
    for r in rows:
        run = dict(r)
        run["board"] = json.loads(run["board"]) if run["board"] else None
        runs.append(run)
    return runs


def export_run(db_path: Path | str, run_id: int) -> dict | None:
    """Export one run with its move-count histogram.

    Returns ``None`` if the run does not exist.
    """
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row

    run_row = conn.execute(
        "SELECT id, kind, reduction, value, trials, workers, seed, backend, "
        "failures, board, created_at FROM runs WHERE id = ?",
        (run_id,),
    ).fetchone()
    if run_row is None:
        conn.close()
        return None

    run = dict(run_row)
    run["board"] = json.loads(run["board"]) if run["board"] else None

    hist_rows = conn.execute(
        "SELECT moves, count FROM histograms WHERE run_id = ? ORDER BY moves",
        (run_id,),
    ).fetchall()
    conn.close()

    # JSON object keys must be strings
    histogram = {str(r["moves"]): r["count"] for r in hist_rows}
    return {"run": run, "histogram": histogram}


def generate_all(db_path: Path | str, output_dir: Path) -> list[Path]:
    """Generate runs.json and one runs/<id>.json file per run.

    Returns a list of all generated file paths.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    runs_dir = output_dir / "runs"
    runs_dir.mkdir(exist_ok=True)

    generated: list[Path] = []

    runs = export_runs(db_path)
    runs_path = output_dir / "runs.json"
    runs_path.write_text(json.dumps(runs, indent=2))
    generated.append(runs_path)

    for run in runs:
        data = export_run(db_path, run["id"])
        if data is None:
            continue
        run_path = runs_dir / f"{run['id']}.json"
        run_path.write_text(json.dumps(data, indent=2))
        generated.append(run_path)

    return generated
