from __future__ import annotations

import csv
import json
from pathlib import Path

import pytest

from pitsim.core.errors import ConfigurationError
from pitsim.runners import cli
from tests.support import write_phase_table

pytestmark = pytest.mark.acceptance


def _status(run_dir: Path) -> dict:
    return json.loads((run_dir / "run_status.json").read_text(encoding="utf-8"))


def test_train_mode_writes_logs_and_status(tmp_path: Path, depression_patterns: Path) -> None:
    pytest.importorskip("torch")
    patterns = depression_patterns
    cli.main(
        [
            "--patterns",
            str(patterns),
            "--out-dir",
            str(tmp_path / "out"),
            "--run-id",
            "train1",
            "--epochs",
            "2",
            "--cycles-per-quarter",
            "2",
            "--pca-interval",
            "0",
            "--wts",
        ]
    )
    run_dir = tmp_path / "out" / "train1"
    status = _status(run_dir)
    assert status["state"] == "finished"
    assert status["runs"][0]["epochs"] == 2
    assert status["runs"][0]["reason"] == "max_epochs"
    config = json.loads((run_dir / "run_config.json").read_text(encoding="utf-8"))
    assert config["mode"] == "train"
    assert config["network"] == "Depress"

    with (run_dir / "Depress_Base_epc.csv").open(newline="", encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert [row["Epoch"] for row in rows] == ["0", "1"]
    assert (run_dir / "Depress_Base_run.csv").exists()
    assert (run_dir / "weights" / "Depress_Base_000_00002.wts").exists()


def test_pit_mode_writes_protocol_report(tmp_path: Path, depression_patterns: Path) -> None:
    pytest.importorskip("torch")
    patterns = depression_patterns
    cli.main(
        [
            "--mode",
            "pit",
            "--patterns",
            str(patterns),
            "--out-dir",
            str(tmp_path / "out"),
            "--run-id",
            "pit1",
            "--cycles-per-quarter",
            "2",
            "--no-epclog",
            "--no-runlog",
        ]
    )
    run_dir = tmp_path / "out" / "pit1"
    status = _status(run_dir)
    assert status["state"] == "finished"
    assert status["completed_phases"] == ["INSTRUMENTAL", "PAVLOV"]
    report = json.loads((run_dir / "protocol_report.json").read_text(encoding="utf-8"))
    assert [result["epochs"] for result in report["results"]] == [1, 1]
    assert (run_dir / "weights" / "trained.wts").exists()
    assert not (run_dir / "Depress_Base_epc.csv").exists()


def test_failure_is_recorded_in_status(tmp_path: Path, depression_patterns: Path) -> None:
    pytest.importorskip("torch")
    patterns = depression_patterns
    write_phase_table(patterns / cli.PHASES_FILE, [("NOPE", 1)])
    with pytest.raises(ConfigurationError):
        cli.main(
            [
                "--mode",
                "pit",
                "--patterns",
                str(patterns),
                "--out-dir",
                str(tmp_path / "out"),
                "--run-id",
                "bad",
            ]
        )
    status = _status(tmp_path / "out" / "bad")
    assert status["state"] == "failed"
    assert "NOPE" in status["last_error"]
