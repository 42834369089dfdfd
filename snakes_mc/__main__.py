"""CLI entry point: python -m snakes_mc {simulate,estimate,history,chart,export}."""

from __future__ import annotations

import argparse
import logging
import math
import sys
from dataclasses import replace
from pathlib import Path

from snakes_mc.aggregator import Backend, FailurePolicy, run_parallel
from snakes_mc.board import CANONICAL_REDIRECTS, CLASSIC_REDIRECTS, BoardConfig, Overshoot
from snakes_mc.chart import make_histogram_chart
from snakes_mc.config import (
    DEFAULT_ESTIMATE_TRIALS,
    DEFAULT_TRIALS,
    RunSettings,
    load_board,
)
from snakes_mc.errors import SimulationError
from snakes_mc.export import generate_all
from snakes_mc.persistence import RunsDB
from snakes_mc.reduction import REDUCTIONS, HitRatio
from snakes_mc.trial import unit_square_trial


def _settings(args: argparse.Namespace) -> RunSettings:
    settings = RunSettings.from_env()
    if getattr(args, "workers", None) is not None:
        settings.workers = args.workers
    if getattr(args, "backend", None) is not None:
        settings.backend = Backend.parse(args.backend)
    if getattr(args, "seed", None) is not None:
        settings.seed = args.seed
    if getattr(args, "policy", None) is not None:
        settings.policy = FailurePolicy.parse(args.policy)
    if getattr(args, "db", None) is not None:
        settings.db_path = Path(args.db)
    return settings


def _board(args: argparse.Namespace) -> BoardConfig:
    if args.board:
        board = load_board(args.board)
    else:
        if args.plain:
            redirects = {}
        elif args.classic:
            redirects = CLASSIC_REDIRECTS
        else:
            redirects = CANONICAL_REDIRECTS
        board = BoardConfig(redirects=redirects)

    overrides: dict = {}
    if args.size is not None:
        overrides["size"] = args.size
    if args.die is not None:
        overrides["die_min"], overrides["die_max"] = args.die
    if args.overshoot is not None:
        overrides["overshoot"] = Overshoot.parse(args.overshoot)
    if args.max_moves is not None:
        overrides["max_moves"] = args.max_moves
    return replace(board, **overrides)


# ── simulate ─────────────────────────────────────────────────────────

BOARD_REDUCTIONS = ("move_histogram", "mean_moves", "mean_redirects")

_LABELS = {
    "move_histogram": "Mean moves to finish",
    "mean_moves": "Mean moves to finish",
    "mean_redirects": "Mean snakes/ladders taken",
}


def cmd_simulate(args: argparse.Namespace) -> None:
    """Estimate the mean number of moves to finish a board."""
    settings = _settings(args)
    board = _board(args)
    reduction = REDUCTIONS[args.reduction]()

    result = run_parallel(
        board, args.trials, settings.workers, reduction,
        seed=settings.seed,
        backend=settings.backend,
        policy=settings.policy,
    )

    ladders = sum(1 for sq in board.redirects if board.is_ladder(sq))
    snakes = sum(1 for sq in board.redirects if board.is_snake(sq))
    print(f"Board: {board.size} squares, {ladders} ladders, {snakes} snakes, "
          f"die {board.die_min}–{board.die_max}, overshoot={board.overshoot.value}")
    print(f"Trials: {result.trials:,} on {settings.workers} {settings.backend.value} worker(s), "
          f"seed {settings.seed}")
    print(f"{_LABELS[reduction.name]}: {result.value:.4f}")
    if isinstance(result.state, dict) and result.state:
        print(f"Fewest / most moves: {min(result.state)} / {max(result.state)}")
    if result.failures:
        print(f"Diverged trials (excluded): {len(result.failures)}")

    if not args.no_record:
        db = RunsDB(settings.db_path)
        run_id = db.record_run(
            "board", result,
            workers=settings.workers, seed=settings.seed,
            backend=settings.backend.value, board=board,
        )
        if isinstance(result.state, dict):
            db.record_histogram(run_id, result.state)
        db.close()
        print(f"Recorded as run {run_id}")


# ── estimate ─────────────────────────────────────────────────────────

def cmd_estimate(args: argparse.Namespace) -> None:
    """Unit-square hit ratio: P(U2 < U1²) = 1/3."""
    settings = _settings(args)

    result = run_parallel(
        None, args.trials, settings.workers, HitRatio(),
        trial=unit_square_trial,
        seed=settings.seed,
        backend=settings.backend,
    )

    stderr = math.sqrt(result.value * (1 - result.value) / result.trials)
    print(f"Hit ratio over {result.trials:,} trials: {result.value:.6f} "
          f"(± {1.96 * stderr:.6f}, exact 1/3 = {1 / 3:.6f})")

    if not args.no_record:
        db = RunsDB(settings.db_path)
        run_id = db.record_run(
            "unit_square", result,
            workers=settings.workers, seed=settings.seed,
            backend=settings.backend.value,
        )
        db.close()
        print(f"Recorded as run {run_id}")


# ── history ──────────────────────────────────────────────────────────

def _open_existing_db(args: argparse.Namespace) -> RunsDB:
    settings = _settings(args)
    if not settings.db_path.exists():
        print(f"No database found at {settings.db_path}. Run some simulations first.",
              file=sys.stderr)
        sys.exit(1)
    return RunsDB(settings.db_path)


def cmd_history(args: argparse.Namespace) -> None:
    """Print every recorded run."""
    db = _open_existing_db(args)
    runs = db.list_runs()
    db.close()

    if not runs:
        print("No runs recorded yet.", file=sys.stderr)
        sys.exit(1)

    print(f"{'id':>4}  {'kind':12s} {'reduction':15s} {'value':>10s} {'trials':>9s} "
          f"{'workers':>7s} {'seed':>6s}")
    print("=" * 70)
    for r in runs:
        print(f"{r.id:>4}  {r.kind:12s} {r.reduction:15s} {r.value:10.4f} {r.trials:9d} "
              f"{r.workers:7d} {r.seed:6d}")


# ── chart ────────────────────────────────────────────────────────────

def cmd_chart(args: argparse.Namespace) -> None:
    """Plot the move-count distribution of a recorded run."""
    db = _open_existing_db(args)
    if args.run is not None and db.get_run(args.run) is None:
        db.close()
        print(f"No run {args.run} in {db.path}.", file=sys.stderr)
        sys.exit(1)
    run_id = args.run if args.run is not None else db.latest_run_with_histogram()
    histogram = db.histogram(run_id) if run_id is not None else {}
    db.close()

    if not histogram:
        print("No recorded run with a move histogram.", file=sys.stderr)
        sys.exit(1)

    out = args.output or "moves_histogram.png"
    make_histogram_chart(histogram, output_path=out, title=f"Moves to finish (run {run_id})")
    print(f"Chart saved to {out}")


# ── export ───────────────────────────────────────────────────────────

def cmd_export(args: argparse.Namespace) -> None:
    """Write runs.json and per-run JSON files."""
    db = _open_existing_db(args)
    db.close()
    generated = generate_all(db.path, Path(args.output_dir))
    print(f"Generated {len(generated)} JSON files in {args.output_dir}")


# ── main ─────────────────────────────────────────────────────────────

def _add_run_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--workers", "-w", type=int, help="Worker count (default 1 or $SNAKES_MC_WORKERS)")
    p.add_argument("--backend", choices=[b.value for b in Backend], help="Worker type")
    p.add_argument("--seed", type=int, help="Run seed (default 0 or $SNAKES_MC_SEED)")
    p.add_argument("--no-record", action="store_true", help="Don't save the run to the database")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snakes_mc",
        description="Parallel Monte-Carlo simulation of snakes & ladders boards",
    )
    parser.add_argument("--verbose", "-v", action="count", default=0,
                        help="Log progress (-vv for debug detail)")
    parser.add_argument("--db", help="SQLite run history (default results/runs.db)")
    sub = parser.add_subparsers(dest="command")

    p_sim = sub.add_parser("simulate", help="Estimate mean moves to finish a board")
    p_sim.add_argument("--trials", "-n", type=int, default=DEFAULT_TRIALS,
                       help=f"Number of trials (default {DEFAULT_TRIALS})")
    p_sim.add_argument("--board", help="JSON board file")
    p_sim.add_argument("--classic", action="store_true",
                       help="Use the classic chutes & ladders table instead of the canonical one")
    p_sim.add_argument("--plain", action="store_true", help="No snakes or ladders at all")
    p_sim.add_argument("--size", type=int, help="Final square")
    p_sim.add_argument("--die", type=int, nargs=2, metavar=("MIN", "MAX"), help="Die range")
    p_sim.add_argument("--overshoot", choices=[o.value for o in Overshoot],
                       help="Rule for rolls past the final square (default cap)")
    p_sim.add_argument("--max-moves", type=int, help="Divergence ceiling per trial")
    p_sim.add_argument("--reduction", choices=BOARD_REDUCTIONS, default="move_histogram",
                       help="Statistic to reduce the trials to (default move_histogram)")
    p_sim.add_argument("--policy", choices=[p.value for p in FailurePolicy],
                       help="What to do when a trial diverges (default fail_fast)")
    _add_run_options(p_sim)

    p_est = sub.add_parser("estimate", help="Unit-square hit-ratio estimate of 1/3")
    p_est.add_argument("--trials", "-n", type=int, default=DEFAULT_ESTIMATE_TRIALS,
                       help=f"Number of trials (default {DEFAULT_ESTIMATE_TRIALS})")
    _add_run_options(p_est)

    sub.add_parser("history", help="List recorded runs")

    p_chart = sub.add_parser("chart", help="Chart a run's move distribution")
    p_chart.add_argument("--run", type=int, help="Run id (default latest board run)")
    p_chart.add_argument("--output", "-o", help="Output PNG path")

    p_export = sub.add_parser("export", help="Export run history to JSON")
    p_export.add_argument("--output-dir", "-o", default="export", help="Output directory")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG if args.verbose > 1 else logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    commands = {
        "simulate": cmd_simulate,
        "estimate": cmd_estimate,
        "history": cmd_history,
        "chart": cmd_chart,
        "export": cmd_export,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        return

    try:
        command(args)
    except SimulationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
