"""Parallel aggregator: fans trials out over a worker pool and folds the results.

Trial ``i`` of a run always draws from ``trial_rng(seed, i)`` and the
reductions are order-independent, so the result does not depend on the
number of workers or on the order chunks finish in.
"""

from __future__ import annotations

import enum
import logging
import math
import multiprocessing as mp
import os
import threading
import time
from collections.abc import Callable, Iterator
from concurrent.futures import (
    Executor,
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    as_completed,
)
from concurrent.futures.process import BrokenProcessPool
from concurrent.futures.thread import BrokenThreadPool
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from snakes_mc.board import BoardConfig
from snakes_mc.errors import (
    DivergenceError,
    InvalidConfigurationError,
    PoolExhaustionError,
)
from snakes_mc.reduction import AggregateResult, Reduction
from snakes_mc.rng import RandomSource, trial_rng
from snakes_mc.trial import run_trial

logger = logging.getLogger(__name__)

TrialFn = Callable[[BoardConfig, RandomSource], Any]

CHUNKS_PER_WORKER = 4


class Backend(str, enum.Enum):
    THREAD = "thread"
    PROCESS = "process"

    @classmethod
    def parse(cls, value: str | Backend) -> Backend:
        try:
            return cls(value)
        except ValueError:
            raise InvalidConfigurationError(
                f"Unknown backend {value!r} (expected 'thread' or 'process')"
            ) from None


class FailurePolicy(str, enum.Enum):
    FAIL_FAST = "fail_fast"  # abort the run on the first divergence
    COLLECT = "collect"      # report diverged trial indices in the result

    @classmethod
    def parse(cls, value: str | FailurePolicy) -> FailurePolicy:
        try:
            return cls(value)
        except ValueError:
            raise InvalidConfigurationError(
                f"Unknown failure policy {value!r} (expected 'fail_fast' or 'collect')"
            ) from None


def available_workers() -> int:
    """Parallelism the runtime will give us."""
    if hasattr(os, "sched_getaffinity"):
        return len(os.sched_getaffinity(0)) or 1
    return os.cpu_count() or 1


def partition(n_trials: int, worker_count: int, chunk_size: int | None = None) -> list[range]:
    """Cut ``range(n_trials)`` into contiguous chunks covering every index once."""
    if chunk_size is None:
        chunk_size = math.ceil(n_trials / (worker_count * CHUNKS_PER_WORKER))
    chunk_size = max(1, chunk_size)
    return [
        range(start, min(start + chunk_size, n_trials))
        for start in range(0, n_trials, chunk_size)
    ]


# ── Worker side ─────────────────────────────────────────────────────

@dataclass
class ChunkReport:
    """Everything a worker sends back for one chunk."""

    outcomes: list[tuple[int, Any]] = field(default_factory=list)
    failures: list[int] = field(default_factory=list)


# Set in each worker process by the pool initializer
_process_cancel: Any = None


def _init_process_worker(cancel_event: Any) -> None:
    global _process_cancel
    _process_cancel = cancel_event


def _run_chunk(
    trial: TrialFn,
    config: BoardConfig,
    seed: int,
    indices: range,
    policy: FailurePolicy,
    cancel_event: Any = None,
) -> ChunkReport:
    """Run the trials in *indices*; stops between trials once cancelled."""
    cancel = cancel_event if cancel_event is not None else _process_cancel
    report = ChunkReport()

    for index in indices:
        if cancel is not None and cancel.is_set():
            break
        try:
            outcome = trial(config, trial_rng(seed, index))
        except DivergenceError as exc:
            exc.trial_index = index
            if policy is FailurePolicy.FAIL_FAST:
                if cancel is not None:
                    cancel.set()
                raise
            report.failures.append(index)
            continue
        report.outcomes.append((index, outcome))

    return report


# ── Pool lifetime ───────────────────────────────────────────────────

@dataclass
class WorkerPool:
    """An executor together with the event its workers poll for cancellation."""

    executor: Executor
    cancel_event: Any
    backend: Backend

    def submit(self, *args: Any) -> Future:
        # Process workers read the event installed by the initializer
        if self.backend is Backend.THREAD:
            return self.executor.submit(*args, self.cancel_event)
        return self.executor.submit(*args)


@contextmanager
def worker_pool(backend: Backend, worker_count: int) -> Iterator[WorkerPool]:
    """Own an executor for the duration of a run.

    On every exit path the cancel event is set, unstarted work is cancelled
    and all workers are joined before control leaves the block.
    """
    try:
        if backend is Backend.PROCESS:
            ctx = mp.get_context()
            cancel_event = ctx.Event()
            executor: Executor = ProcessPoolExecutor(
                max_workers=worker_count,
                mp_context=ctx,
                initializer=_init_process_worker,
                initargs=(cancel_event,),
            )
        else:
            cancel_event = threading.Event()
            executor = ThreadPoolExecutor(
                max_workers=worker_count, thread_name_prefix="snakes_mc",
            )
    except (OSError, ValueError) as exc:
        raise PoolExhaustionError(
            f"Could not start {worker_count} {backend.value} workers: {exc}"
        ) from exc

    logger.debug("Started %d %s workers", worker_count, backend.value)
    try:
        yield WorkerPool(executor=executor, cancel_event=cancel_event, backend=backend)
    finally:
        cancel_event.set()
        executor.shutdown(wait=True, cancel_futures=True)
        logger.debug("Released %d %s workers", worker_count, backend.value)


# ── Aggregation ─────────────────────────────────────────────────────

def run_parallel(
    config: BoardConfig | None,
    n_trials: int,
    worker_count: int,
    reduction: Reduction,
    *,
    trial: TrialFn = run_trial,
    seed: int = 0,
    backend: Backend | str = Backend.THREAD,
    policy: FailurePolicy | str = FailurePolicy.FAIL_FAST,
    chunk_size: int | None = None,
) -> AggregateResult:
    """Run *n_trials* independent trials on *worker_count* workers and reduce them.

    Blocks until every trial has been folded in. Configuration problems are
    raised before any worker starts. Under ``FAIL_FAST`` the first
    DivergenceError cancels the run and propagates once the pool is released.
    """
    backend = Backend.parse(backend)
    policy = FailurePolicy.parse(policy)

    if n_trials < 1:
        raise InvalidConfigurationError(f"n_trials must be at least 1, got {n_trials}")
    if config is not None:
        config.validate()
    elif trial is run_trial:
        raise InvalidConfigurationError("Board trials need a board configuration")
    limit = available_workers()
    if not 1 <= worker_count <= limit:
        raise PoolExhaustionError(
            f"Requested {worker_count} workers; 1..{limit} available"
        )

    chunks = partition(n_trials, worker_count, chunk_size)
    logger.info(
        "Running %d trials (%s) on %d %s workers in %d chunks, seed=%d",
        n_trials, reduction.name, worker_count, backend.value, len(chunks), seed,
    )
    start = time.perf_counter()

    acc = reduction.identity()
    folded = 0
    failures: list[int] = []

    with worker_pool(backend, worker_count) as pool:
        futures = {
            pool.submit(_run_chunk, trial, config, seed, chunk, policy): chunk
            for chunk in chunks
        }
        for future in as_completed(futures):
            try:
                report = future.result()
            except DivergenceError as exc:
                logger.warning("Cancelling run: %s", exc)
                raise
            except (BrokenProcessPool, BrokenThreadPool) as exc:
                raise PoolExhaustionError(f"Worker pool failed: {exc}") from exc

            # The merge point: the only place the accumulator changes
            for _, outcome in report.outcomes:
                acc = reduction.fold(acc, outcome)
            folded += len(report.outcomes)
            failures.extend(report.failures)
            logger.debug(
                "Chunk %d..%d merged (%d/%d)",
                futures[future].start, futures[future].stop, folded, n_trials,
            )

    if failures:
        logger.warning("%d of %d trials diverged", len(failures), n_trials)
    logger.info(
        "Finished %d trials in %.2fs", n_trials, time.perf_counter() - start,
    )
    return AggregateResult(
        reduction=reduction.name,
        value=reduction.finalize(acc),
        trials=folded,
        state=acc,
        failures=tuple(sorted(failures)),
    )
