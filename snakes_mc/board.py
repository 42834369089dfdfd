"""Board configuration and movement rules for snakes & ladders boards."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from snakes_mc.errors import InvalidConfigurationError

# fmt: off
# Snakes only; the reference table for seeded reproducibility checks
CANONICAL_REDIRECTS: dict[int, int] = {
    16:  6,  49: 12,  47: 26,  56: 48,  62: 19,
    64: 60,  87: 24,  93: 73,  96: 76,  98: 78,
}

# Milton Bradley Chutes & Ladders
CLASSIC_REDIRECTS: dict[int, int] = {
    # Ladders (go UP)
     1: 38,   4: 14,   9: 31,  21: 42,  28: 84,
    36: 44,  51: 67,  71: 91,  80: 100,
    # Chutes (go DOWN)
    16:  6,  47: 26,  49: 11,  56: 53,  62: 19,
    64: 60,  87: 24,  93: 73,  95: 75,  98: 78,
}
# fmt: on

DEFAULT_MAX_MOVES = 10_000


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class Overshoot(str, enum.Enum):
    """What happens when a roll would carry the token past the last square."""

    CAP = "cap"        # stop on the last square
    BOUNCE = "bounce"  # reflect back off the last square, no further than 0
    STAY = "stay"      # don't move this turn

    @classmethod
    def parse(cls, value: str | Overshoot) -> Overshoot:
        try:
            return cls(value)
        except ValueError:
            choices = ", ".join(o.value for o in cls)
            raise InvalidConfigurationError(
                f"Unknown overshoot rule {value!r} (expected one of: {choices})"
            ) from None


@dataclass(frozen=True)
class BoardConfig:
    """Immutable description of a board and its rules.

    ``redirects`` maps a landing square to its destination; squares not in the
    table map to themselves. A redirection is applied once per landing and
    chains are never followed.
    """

    size: int = 100
    redirects: Mapping[int, int] = field(
        default_factory=lambda: dict(CANONICAL_REDIRECTS)
    )
    die_min: int = 1
    die_max: int = 6
    overshoot: Overshoot = Overshoot.CAP
    max_moves: int = DEFAULT_MAX_MOVES

    def __post_init__(self) -> None:
        # Copy and freeze the table
        object.__setattr__(
            self, "redirects", MappingProxyType(dict(self.redirects))
        )
        object.__setattr__(self, "overshoot", Overshoot.parse(self.overshoot))

    def __reduce__(self):
        # MappingProxyType doesn't pickle; rebuild from a plain dict
        return (
            type(self),
            (self.size, dict(self.redirects), self.die_min, self.die_max,
             self.overshoot, self.max_moves),
        )

    def validate(self) -> None:
        """Raise InvalidConfigurationError unless the board is playable."""
        for name in ("size", "die_min", "die_max", "max_moves"):
            if not _is_int(getattr(self, name)):
                raise InvalidConfigurationError(
                    f"{name} must be an integer, got {getattr(self, name)!r}"
                )
        for square, dest in self.redirects.items():
            if not _is_int(square) or not _is_int(dest):
                raise InvalidConfigurationError(
                    f"Redirect {square!r} → {dest!r} must map integer squares"
                )
        if self.size <= 0:
            raise InvalidConfigurationError(
                f"Board size must be positive, got {self.size}"
            )
        if self.die_min < 1 or self.die_max < self.die_min:
            raise InvalidConfigurationError(
                f"Invalid die range {self.die_min}..{self.die_max}"
            )
        if self.max_moves < 1:
            raise InvalidConfigurationError(
                f"max_moves must be at least 1, got {self.max_moves}"
            )
        for square, dest in self.redirects.items():
            if not 0 <= square <= self.size or not 0 <= dest <= self.size:
                raise InvalidConfigurationError(
                    f"Redirect {square} → {dest} is outside the board 0..{self.size}"
                )

    def redirect(self, square: int) -> int:
        return self.redirects.get(square, square)

    def is_ladder(self, square: int) -> bool:
        return self.redirect(square) > square

    def is_snake(self, square: int) -> bool:
        return self.redirect(square) < square

    def to_dict(self) -> dict[str, Any]:
        return {
            "size": self.size,
            "redirects": {str(k): v for k, v in sorted(self.redirects.items())},
            "die": [self.die_min, self.die_max],
            "overshoot": self.overshoot.value,
            "max_moves": self.max_moves,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BoardConfig:
        """Build a config from the JSON shape produced by :meth:`to_dict`."""
        try:
            redirects = {
                int(k): int(v) for k, v in data.get("redirects", {}).items()
            }
            die_min, die_max = data.get("die", (1, 6))
            return cls(
                size=int(data.get("size", 100)),
                redirects=redirects,
                die_min=int(die_min),
                die_max=int(die_max),
                overshoot=data.get("overshoot", Overshoot.CAP.value),
                max_moves=int(data.get("max_moves", DEFAULT_MAX_MOVES)),
            )
        except InvalidConfigurationError:
            raise
        except (AttributeError, TypeError, ValueError) as exc:
            raise InvalidConfigurationError(f"Malformed board description: {exc}") from exc


@dataclass
class MoveResult:
    """What happened after one roll."""

    landing: int
    new_position: int
    redirected: bool = False
    bounced: bool = False
    stayed: bool = False
    finished: bool = False


def apply_roll(config: BoardConfig, position: int, roll: int) -> MoveResult:
    """Compute the result of rolling *roll* from *position*.

    Pure: the caller owns the trial state and decides what to commit.
    """
    target = position + roll
    bounced = False

    if target > config.size:
        if config.overshoot is Overshoot.STAY:
            return MoveResult(landing=position, new_position=position, stayed=True)
        if config.overshoot is Overshoot.BOUNCE:
            # A roll longer than twice the board reflects past the start; clamp to 0
            target = max(0, 2 * config.size - target)
            bounced = True
        else:
            target = config.size

    dest = config.redirect(target)
    return MoveResult(
        landing=target,
        new_position=dest,
        redirected=dest != target,
        bounced=bounced,
        finished=dest == config.size,
    )
