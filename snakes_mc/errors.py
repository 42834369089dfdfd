"""Exceptions raised by the trial engine and the parallel aggregator."""

from __future__ import annotations


class SimulationError(Exception):
    """Base class for everything the engine raises."""


class InvalidConfigurationError(SimulationError, ValueError):
    """A board or run setting can never produce a valid simulation."""


class PoolExhaustionError(SimulationError):
    """The requested worker pool cannot be created or was lost."""


class DivergenceError(SimulationError):
    """A trial hit its move ceiling without reaching the final square.

    Attributes are keyword-only so the exception pickles cleanly when it is
    raised inside a worker process.
    """

    def __init__(
        self,
        message: str,
        *,
        moves: int | None = None,
        position: int | None = None,
        trial_index: int | None = None,
    ):
        super().__init__(message)
        self.moves = moves
        self.position = position
        self.trial_index = trial_index

    def __str__(self) -> str:
        msg = super().__str__()
        if self.trial_index is not None:
            msg += f" (trial {self.trial_index})"
        return msg
