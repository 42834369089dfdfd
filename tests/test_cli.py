"""Tests for the python -m snakes_mc entry point."""

import json
import tempfile
from pathlib import Path

import pytest

from snakes_mc.__main__ import main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("SNAKES_MC_WORKERS", "SNAKES_MC_BACKEND", "SNAKES_MC_SEED", "SNAKES_MC_DB"):
        monkeypatch.delenv(var, raising=False)


def test_simulate_records_run(capsys):
    with tempfile.TemporaryDirectory() as tmp:
        db = str(Path(tmp) / "runs.db")
        main(["--db", db, "simulate", "-n", "200", "--seed", "3"])
        out = capsys.readouterr().out
        assert "Mean moves to finish" in out
        assert "Recorded as run 1" in out

        main(["--db", db, "history"])
        out = capsys.readouterr().out
        assert "move_histogram" in out


def test_simulate_unit_die_board(capsys):
    main(["simulate", "-n", "5", "--plain", "--size", "12", "--die", "1", "1", "--no-record"])
    out = capsys.readouterr().out
    assert "Mean moves to finish: 12.0000" in out


def test_simulate_board_file(capsys):
    with tempfile.TemporaryDirectory() as tmp:
        board = Path(tmp) / "board.json"
        board.write_text(json.dumps({"size": 8, "redirects": {}, "die": [2, 2]}))
        main(["simulate", "-n", "3", "--board", str(board), "--no-record"])
    assert "Mean moves to finish: 4.0000" in capsys.readouterr().out


def test_simulate_invalid_board_exits(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["simulate", "--size", "0", "--no-record"])
    assert excinfo.value.code == 1
    assert "Error" in capsys.readouterr().err


def test_simulate_divergence_exits(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["simulate", "-n", "10", "--plain", "--size", "5", "--die", "1", "1",
              "--max-moves", "3", "--no-record"])
    assert excinfo.value.code == 1
    assert "No finish after 3 moves" in capsys.readouterr().err


def test_simulate_collect_policy(capsys):
    main(["simulate", "-n", "10", "--plain", "--size", "5", "--die", "1", "1",
          "--max-moves", "3", "--policy", "collect", "--no-record"])
    assert "Diverged trials (excluded): 10" in capsys.readouterr().out


def test_estimate(capsys):
    main(["estimate", "-n", "2000", "--no-record"])
    assert "Hit ratio over 2,000 trials" in capsys.readouterr().out


def test_history_without_db(capsys):
    with tempfile.TemporaryDirectory() as tmp:
        with pytest.raises(SystemExit):
            main(["--db", str(Path(tmp) / "missing.db"), "history"])
    assert "No database found" in capsys.readouterr().err


def test_chart_and_export(capsys):
    with tempfile.TemporaryDirectory() as tmp:
        db = str(Path(tmp) / "runs.db")
        main(["--db", db, "simulate", "-n", "100"])
        main(["--db", db, "estimate", "-n", "100"])

        png = Path(tmp) / "hist.png"
        main(["--db", db, "chart", "-o", str(png)])
        assert png.exists()

        out_dir = Path(tmp) / "export"
        main(["--db", db, "export", "-o", str(out_dir)])
        assert (out_dir / "runs.json").exists()
        assert len(json.loads((out_dir / "runs.json").read_text())) == 2
    assert "Generated 3 JSON files" in capsys.readouterr().out


def test_simulate_mean_redirects_skips_histogram(capsys):
    with tempfile.TemporaryDirectory() as tmp:
        db = str(Path(tmp) / "runs.db")
        main(["--db", db, "simulate", "-n", "5", "--plain", "--size", "12",
              "--die", "1", "1", "--reduction", "mean_redirects"])
        out = capsys.readouterr().out
        assert "Mean snakes/ladders taken: 0.0000" in out

        with pytest.raises(SystemExit):
            main(["--db", db, "chart", "-o", str(Path(tmp) / "none.png")])
    assert "No recorded run with a move histogram" in capsys.readouterr().err


def test_simulate_reports_ladders_and_snakes(capsys):
    main(["simulate", "-n", "20", "--classic", "--no-record"])
    assert "9 ladders, 10 snakes" in capsys.readouterr().out


def test_chart_unknown_run(capsys):
    with tempfile.TemporaryDirectory() as tmp:
        db = str(Path(tmp) / "runs.db")
        main(["--db", db, "simulate", "-n", "50", "--seed", "1"])
        with pytest.raises(SystemExit) as excinfo:
            main(["--db", db, "chart", "--run", "7"])
    assert excinfo.value.code == 1
    assert "No run 7" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    main([])
    assert "usage" in capsys.readouterr().out
