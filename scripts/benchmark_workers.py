#!/usr/bin/env python3
"""Time run_parallel across worker counts and print a speed-up table.

Usage:
    python scripts/benchmark_workers.py [TRIALS] [--backend process]

Every row uses the same seed, so the mean column must not change.
"""

import argparse
import time

from snakes_mc.aggregator import Backend, available_workers, run_parallel
from snakes_mc.board import CLASSIC_REDIRECTS, BoardConfig
from snakes_mc.reduction import MeanMoves


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("trials", type=int, nargs="?", default=20_000)
    parser.add_argument("--backend", choices=[b.value for b in Backend], default="process")
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args()

    board = BoardConfig(redirects=CLASSIC_REDIRECTS)
    counts = [w for w in (1, 2, 4, 8, 16) if w <= available_workers()]

    print(f"{args.trials:,} trials, {args.backend} backend")
    print(f"{'workers':>7}  {'seconds':>8}  {'speed-up':>8}  {'mean moves':>10}")
    print("=" * 42)

    baseline = None
    for workers in counts:
        start = time.perf_counter()
        result = run_parallel(board, args.trials, workers, MeanMoves(),
                              seed=args.seed, backend=args.backend)
        elapsed = time.perf_counter() - start
        baseline = baseline or elapsed
        print(f"{workers:>7}  {elapsed:8.2f}  {baseline / elapsed:8.2f}x  {result.value:10.4f}")


if __name__ == "__main__":
    main()
