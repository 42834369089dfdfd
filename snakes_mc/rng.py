"""Random sources for trials.

A random source is anything with the ``randint(a, b)`` / ``random()`` pair of
:class:`random.Random`. Trials never share a source: each trial index gets its
own, derived from the run seed, so results don't depend on which worker ran
which trial.
"""

from __future__ import annotations

import random
from collections.abc import Iterable
from typing import Protocol, runtime_checkable


@runtime_checkable
class RandomSource(Protocol):
    def randint(self, a: int, b: int) -> int: ...

    def random(self) -> float: ...


def trial_rng(seed: int, index: int) -> random.Random:
    """Return a fresh generator for trial *index* of a run seeded with *seed*.

    String seeds are hashed with SHA-512 by :class:`random.Random`, so the
    stream is stable across processes and interpreter runs.
    """
    return random.Random(f"snakes_mc:{seed}:{index}")


class ScriptedRolls:
    """Replays a fixed sequence of die rolls.

    ``random()`` draws come from a seeded generator so the object still
    satisfies :class:`RandomSource`.
    """

    def __init__(self, rolls: Iterable[int], seed: int = 0):
        self.rolls = list(rolls)
        self._idx = 0
        self._uniform = random.Random(seed)

    @property
    def consumed(self) -> int:
        return self._idx

    def randint(self, a: int, b: int) -> int:
        if self._idx >= len(self.rolls):
            raise IndexError(f"Scripted rolls exhausted after {self._idx} draws")
        roll = self.rolls[self._idx]
        if not a <= roll <= b:
            raise ValueError(f"Scripted roll {roll} outside {a}..{b}")
        self._idx += 1
        return roll

    def random(self) -> float:
        return self._uniform.random()
