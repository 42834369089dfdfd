"""Trial engine: plays one complete, independent run of a board."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from snakes_mc.board import BoardConfig, apply_roll
from snakes_mc.errors import DivergenceError
from snakes_mc.rng import RandomSource


# ── Structured types ────────────────────────────────────────────────

@dataclass
class TrialState:
    """Mutable state that evolves during a single trial."""

    position: int = 0
    moves: int = 0
    redirects: int = 0


@dataclass(frozen=True)
class TrialOutcome:
    """Result of a board trial: moves to finish and redirections taken."""

    moves: int
    redirects: int = 0


@dataclass(frozen=True)
class HitOutcome:
    """Result of a yes/no Monte-Carlo trial."""

    hit: bool


@dataclass
class MoveRecord:
    """Record of a single roll during a trial."""

    move_number: int
    roll: int
    from_square: int
    landing: int
    to_square: int
    redirected: bool = False
    bounced: bool = False
    stayed: bool = False


# ── Observer ────────────────────────────────────────────────────────

class MoveObserver(Protocol):
    """Receives structured events as a trial is played."""

    def on_move(self, record: MoveRecord) -> None: ...


@dataclass
class ListObserver:
    """Collects move records into a list."""

    records: list[MoveRecord] = field(default_factory=list)

    def on_move(self, record: MoveRecord) -> None:
        self.records.append(record)


# ── Trials ──────────────────────────────────────────────────────────

def run_trial(
    config: BoardConfig,
    rng: RandomSource,
    observer: MoveObserver | None = None,
) -> TrialOutcome:
    """Play one trial from square 0 until the token reaches the last square.

    Raises DivergenceError once ``config.max_moves`` rolls have been made
    without finishing.
    """
    config.validate()
    state = TrialState()

    while state.position != config.size:
        if state.moves >= config.max_moves:
            raise DivergenceError(
                f"No finish after {state.moves} moves (stuck near square {state.position})",
                moves=state.moves,
                position=state.position,
            )

        roll = rng.randint(config.die_min, config.die_max)
        result = apply_roll(config, state.position, roll)
        state.moves += 1
        if result.redirected:
            state.redirects += 1

        if observer is not None:
            observer.on_move(MoveRecord(
                move_number=state.moves,
                roll=roll,
                from_square=state.position,
                landing=result.landing,
                to_square=result.new_position,
                redirected=result.redirected,
                bounced=result.bounced,
                stayed=result.stayed,
            ))

        state.position = result.new_position

    return TrialOutcome(moves=state.moves, redirects=state.redirects)


def unit_square_trial(config: BoardConfig | None, rng: RandomSource) -> HitOutcome:
    """Draw (U1, U2) uniformly and hit when U2 < U1². Expected ratio is 1/3.

    The board argument is ignored; it's accepted so this has the same shape
    as :func:`run_trial` for the aggregator.
    """
    u1 = rng.random()
    u2 = rng.random()
    return HitOutcome(hit=u2 < u1 * u1)
