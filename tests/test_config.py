"""Tests for snakes_mc.config."""

import json
import tempfile
from pathlib import Path

import pytest

from snakes_mc.aggregator import Backend
from snakes_mc.board import Overshoot
from snakes_mc.config import DB_PATH, RunSettings, load_board
from snakes_mc.errors import InvalidConfigurationError


def test_defaults_without_environment():
    settings = RunSettings.from_env({})
    assert settings.workers == 1
    assert settings.backend is Backend.THREAD
    assert settings.seed == 0
    assert settings.db_path == DB_PATH


def test_environment_overrides():
    settings = RunSettings.from_env({
        "SNAKES_MC_WORKERS": "4",
        "SNAKES_MC_BACKEND": "process",
        "SNAKES_MC_SEED": "99",
        "SNAKES_MC_DB": "/tmp/other.db",
    })
    assert settings.workers == 4
    assert settings.backend is Backend.PROCESS
    assert settings.seed == 99
    assert settings.db_path == Path("/tmp/other.db")


def test_bad_environment_values():
    with pytest.raises(InvalidConfigurationError):
        RunSettings.from_env({"SNAKES_MC_WORKERS": "many"})
    with pytest.raises(InvalidConfigurationError):
        RunSettings.from_env({"SNAKES_MC_BACKEND": "gpu"})


def test_load_board_file():
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "board.json"
        path.write_text(json.dumps({
            "size": 30,
            "redirects": {"3": 22, "27": 1},
            "die": [1, 4],
            "overshoot": "bounce",
        }))
        board = load_board(path)

    assert board.size == 30
    assert board.redirect(3) == 22
    assert (board.die_min, board.die_max) == (1, 4)
    assert board.overshoot is Overshoot.BOUNCE


def test_load_board_validates():
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "board.json"
        path.write_text(json.dumps({"size": 10, "redirects": {"3": 40}}))
        with pytest.raises(InvalidConfigurationError):
            load_board(path)


@pytest.mark.parametrize("content", ["not json", "[1, 2]"])
def test_load_board_bad_file(content):
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "board.json"
        path.write_text(content)
        with pytest.raises(InvalidConfigurationError):
            load_board(path)


def test_load_board_missing_file():
    with pytest.raises(InvalidConfigurationError):
        load_board("/nonexistent/board.json")
