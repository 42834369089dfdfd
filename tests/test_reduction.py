"""Tests for snakes_mc.reduction."""

import math
import random

from snakes_mc.board import BoardConfig
from snakes_mc.reduction import (
    REDUCTIONS,
    HitRatio,
    MeanMoves,
    MeanRedirects,
    MoveHistogram,
    Tally,
    fold_outcomes,
)
from snakes_mc.rng import trial_rng
from snakes_mc.trial import HitOutcome, TrialOutcome, run_trial


def _outcomes(n=300, seed=5):
    board = BoardConfig()
    return [run_trial(board, trial_rng(seed, i)) for i in range(n)]


def test_mean_moves():
    outcomes = [TrialOutcome(moves=m) for m in (10, 20, 30)]
    result = fold_outcomes(MeanMoves(), outcomes)
    assert result.value == 20.0
    assert result.trials == 3
    assert result.state == Tally(total=60, count=3)


def test_mean_redirects():
    outcomes = [TrialOutcome(moves=5, redirects=r) for r in (0, 1, 2, 1)]
    assert fold_outcomes(MeanRedirects(), outcomes).value == 1.0


def test_hit_ratio():
    outcomes = [HitOutcome(hit=h) for h in (True, False, False, True)]
    assert fold_outcomes(HitRatio(), outcomes).value == 0.5


def test_histogram_counts_and_mean():
    outcomes = [TrialOutcome(moves=m) for m in (7, 7, 9)]
    result = fold_outcomes(MoveHistogram(), outcomes)
    assert result.state == {7: 2, 9: 1}
    assert math.isclose(result.value, 23 / 3)


def test_empty_fold_is_nan():
    assert math.isnan(fold_outcomes(MeanMoves(), []).value)
    assert math.isnan(fold_outcomes(MoveHistogram(), []).value)


def test_histogram_fold_counts_in_place():
    reduction = MoveHistogram()
    acc = reduction.identity()
    for m in range(5_000):
        assert reduction.fold(acc, TrialOutcome(moves=m % 7)) is acc
    assert sum(acc.values()) == 5_000
    assert reduction.identity() == {}


def test_histogram_merge_leaves_inputs_alone():
    reduction = MoveHistogram()
    a, b = {3: 1}, {3: 2, 4: 1}
    assert reduction.merge(a, b) == {3: 3, 4: 1}
    assert a == {3: 1}
    assert b == {3: 2, 4: 1}


# ── order independence ──────────────────────────────────────────────

def test_permuted_folds_are_identical():
    outcomes = _outcomes()
    shuffled = list(outcomes)
    random.Random(11).shuffle(shuffled)

    for name, cls in REDUCTIONS.items():
        if name == "hit_ratio":
            continue
        a = fold_outcomes(cls(), outcomes)
        b = fold_outcomes(cls(), shuffled)
        assert a.value == b.value, name
        assert a.state == b.state, name


def test_merging_partials_matches_single_fold():
    outcomes = _outcomes()
    parts = [outcomes[:50], outcomes[50:180], outcomes[180:]]

    for reduction in (MeanMoves(), MoveHistogram()):
        partials = [fold_outcomes(reduction, p).state for p in parts]
        left = reduction.merge(reduction.merge(partials[0], partials[1]), partials[2])
        right = reduction.merge(partials[2], reduction.merge(partials[1], partials[0]))
        assert left == right == fold_outcomes(reduction, outcomes).state
