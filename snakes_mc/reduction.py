"""Order-independent reductions over trial outcomes.

Every reduction here keeps integer state, so folding and merging are exactly
associative and commutative: the final value is the same whatever order the
outcomes arrive in.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

from snakes_mc.trial import HitOutcome, TrialOutcome

A = TypeVar("A")


class Reduction(Protocol[A]):
    """Structural interface for an order-independent fold.

    ``fold`` may update a mutable accumulator in place and return it; the
    caller that got the accumulator from ``identity()`` owns it.
    """

    name: str

    def identity(self) -> A: ...

    def fold(self, acc: A, outcome: Any) -> A: ...

    def merge(self, a: A, b: A) -> A: ...

    def finalize(self, acc: A) -> float: ...


@dataclass(frozen=True)
class Tally:
    """Running sum and count."""

    total: int = 0
    count: int = 0

    def __add__(self, other: Tally) -> Tally:
        return Tally(self.total + other.total, self.count + other.count)

    @property
    def mean(self) -> float:
        return self.total / self.count if self.count else float("nan")


class _TallyReduction:
    name = "tally"

    def identity(self) -> Tally:
        return Tally()

    def value(self, outcome: Any) -> int:
        raise NotImplementedError

    def fold(self, acc: Tally, outcome: Any) -> Tally:
        return Tally(acc.total + self.value(outcome), acc.count + 1)

    def merge(self, a: Tally, b: Tally) -> Tally:
        return a + b

    def finalize(self, acc: Tally) -> float:
        return acc.mean


class MeanMoves(_TallyReduction):
    """Mean number of moves to finish the board."""

    name = "mean_moves"

    def value(self, outcome: TrialOutcome) -> int:
        return outcome.moves


class MeanRedirects(_TallyReduction):
    """Mean number of snakes/ladders taken per trial."""

    name = "mean_redirects"

    def value(self, outcome: TrialOutcome) -> int:
        return outcome.redirects


class HitRatio(_TallyReduction):
    """Fraction of trials that hit."""

    name = "hit_ratio"

    def value(self, outcome: HitOutcome) -> int:
        return int(outcome.hit)


class MoveHistogram:
    """Distribution of moves-to-finish; finalizes to the mean."""

    name = "move_histogram"

    def identity(self) -> dict[int, int]:
        return {}

    def fold(self, acc: dict[int, int], outcome: TrialOutcome) -> dict[int, int]:
        # Counts in place; identity() hands out a fresh dict per run
        acc[outcome.moves] = acc.get(outcome.moves, 0) + 1
        return acc

    def merge(self, a: Mapping[int, int], b: Mapping[int, int]) -> dict[int, int]:
        out = dict(a)
        for moves, count in b.items():
            out[moves] = out.get(moves, 0) + count
        return out

    def finalize(self, acc: Mapping[int, int]) -> float:
        count = sum(acc.values())
        if not count:
            return float("nan")
        return sum(m * c for m, c in acc.items()) / count


REDUCTIONS: dict[str, type] = {
    r.name: r for r in (MeanMoves, MeanRedirects, HitRatio, MoveHistogram)
}


@dataclass(frozen=True)
class AggregateResult:
    """The reduced statistic over all completed trials."""

    reduction: str
    value: float
    trials: int
    state: Any = None
    failures: tuple[int, ...] = field(default_factory=tuple)


def fold_outcomes(reduction: Reduction, outcomes: Iterable[Any]) -> AggregateResult:
    """Fold *outcomes* one by one in the given order."""
    acc = reduction.identity()
    n = 0
    for outcome in outcomes:
        acc = reduction.fold(acc, outcome)
        n += 1
    return AggregateResult(
        reduction=reduction.name,
        value=reduction.finalize(acc),
        trials=n,
        state=acc,
    )
