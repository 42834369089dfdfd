"""Run settings: defaults, environment overrides, and board files.

Precedence is CLI flag > environment variable > the defaults below.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from snakes_mc.aggregator import Backend, FailurePolicy
from snakes_mc.board import BoardConfig
from snakes_mc.errors import InvalidConfigurationError

RESULTS_DIR = Path("results")
DB_PATH = RESULTS_DIR / "runs.db"

DEFAULT_TRIALS = 10_000
DEFAULT_ESTIMATE_TRIALS = 500_000
DEFAULT_SEED = 0

ENV_WORKERS = "SNAKES_MC_WORKERS"
ENV_BACKEND = "SNAKES_MC_BACKEND"
ENV_SEED = "SNAKES_MC_SEED"
ENV_DB = "SNAKES_MC_DB"


@dataclass
class RunSettings:
    """How a run is executed, independent of the board it plays."""

    workers: int = 1
    backend: Backend = Backend.THREAD
    seed: int = DEFAULT_SEED
    policy: FailurePolicy = FailurePolicy.FAIL_FAST
    db_path: Path = DB_PATH

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> RunSettings:
        env = os.environ if environ is None else environ
        settings = cls()
        if env.get(ENV_WORKERS):
            settings.workers = _int_var(env, ENV_WORKERS)
        if env.get(ENV_BACKEND):
            settings.backend = Backend.parse(env[ENV_BACKEND])
        if env.get(ENV_SEED):
            settings.seed = _int_var(env, ENV_SEED)
        if env.get(ENV_DB):
            settings.db_path = Path(env[ENV_DB])
        return settings


def _int_var(env: dict[str, str], name: str) -> int:
    try:
        return int(env[name])
    except ValueError:
        raise InvalidConfigurationError(
            f"{name} must be an integer, got {env[name]!r}"
        ) from None


def load_board(path: Path | str) -> BoardConfig:
    """Read a board description from a JSON file and validate it.

    Expected shape::

        {"size": 100, "redirects": {"16": 6, ...}, "die": [1, 6],
         "overshoot": "cap", "max_moves": 10000}
    """
    try:
        data = json.loads(Path(path).read_text())
    except (OSError, json.JSONDecodeError) as exc:
        raise InvalidConfigurationError(f"Cannot read board file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise InvalidConfigurationError(f"Board file {path} must hold a JSON object")
    board = BoardConfig.from_dict(data)
    board.validate()
    return board
