from __future__ import annotations

import csv

import pytest

from pitsim.contracts.logs import EvalMode, ILogs, TimeScale
from pitsim.monitors.logs import SimLogs
from pitsim.simulation.stats import Stats

pytestmark = pytest.mark.unit


def _trial_stats(stats: Stats, trial: int, sse: float) -> None:
    stats.set_int("Run", 0)
    stats.set_int("Epoch", 0)
    stats.set_int("Trial", trial)
    stats.set_string("TrialName", f"t{trial}")
    stats.set_string("Phase", "")
    stats.set_float("TrlSSE", sse)
    stats.set_float("TrlAvgSSE", sse / 2)
    stats.set_float("TrlErr", 1.0 if sse > 0 else 0.0)
    stats.set_float("TrlCosDiff", 0.5)


def test_sim_logs_is_an_ilogs() -> None:
    assert isinstance(SimLogs(Stats()), ILogs)


def test_trial_rows_overwrite_by_trial_index() -> None:
    stats = Stats()
    logs = SimLogs(stats)
    for epoch_pass in range(2):
        for trial in range(3):
            _trial_stats(stats, trial, float(epoch_pass))
            logs.log_row(EvalMode.TRAIN, TimeScale.TRIAL)
    rows = logs.table(EvalMode.TRAIN, TimeScale.TRIAL)
    assert len(rows) == 3
    assert [row["SSE"] for row in rows] == [1.0, 1.0, 1.0]
    assert logs.row_count(EvalMode.TRAIN, TimeScale.TRIAL) == 6
    assert set(rows[0]) == {"Run", "Epoch", "Phase", "Trial", "TrialName", "Err", "SSE", "AvgSSE", "CosDiff"}


def test_epoch_rows_append_and_include_pca_stats() -> None:
    stats = Stats()
    logs = SimLogs(stats)
    stats.set_int("Epoch", 0)
    stats.set_float("EpcSSE", 2.0)
    stats.set_float("Hidden1_PCA_NStrong", 3.0)
    logs.log_row(EvalMode.TRAIN, TimeScale.EPOCH)
    stats.set_int("Epoch", 1)
    logs.log_row(EvalMode.TRAIN, TimeScale.EPOCH)
    rows = logs.table(EvalMode.TRAIN, TimeScale.EPOCH)
    assert [row["Epoch"] for row in rows] == [0, 1]
    assert rows[0]["SSE"] == 2.0
    assert rows[0]["Hidden1_PCA_NStrong"] == 3.0

    logs.reset_log(EvalMode.TRAIN, TimeScale.EPOCH)
    assert logs.table(EvalMode.TRAIN, TimeScale.EPOCH) == []
    assert logs.row_count(EvalMode.TRAIN, TimeScale.EPOCH) == 2


def test_test_epoch_summarizes_trials_and_errors() -> None:
    stats = Stats()
    logs = SimLogs(stats)
    for trial, sse in enumerate([0.0, 2.0, 4.0, 0.0]):
        _trial_stats(stats, trial, sse)
        logs.log_row(EvalMode.TEST, TimeScale.TRIAL)
    logs.log_row(EvalMode.TEST, TimeScale.EPOCH)

    row = logs.table(EvalMode.TEST, TimeScale.EPOCH)[0]
    assert row["NTrials"] == 4
    assert row["SSE"] == pytest.approx(1.5)
    assert row["PctErr"] == pytest.approx(0.5)
    assert row["PctCor"] == pytest.approx(0.5)
    errors = logs.misc_tables["TestErrors"]
    assert [e["TrialName"] for e in errors] == ["t1", "t2"]
    assert logs.misc_tables["TestErrorStats"] == [{"SSE:Sum": 6.0}]


def test_run_stats_grouped_by_params() -> None:
    stats = Stats()
    logs = SimLogs(stats, params_name="Base")
    for first_zero, pct in [(3, 1.0), (5, 0.5)]:
        stats.set_int("FirstZero", first_zero)
        stats.set_float("EpcPctCor", pct)
        logs.log_row(EvalMode.TRAIN, TimeScale.RUN)
    (summary,) = logs.misc_tables["RunStats"]
    assert summary["Params"] == "Base"
    assert summary["FirstZero:Count"] == 2
    assert summary["FirstZero:Mean"] == pytest.approx(4.0)
    assert summary["FirstZero:Min"] == 3.0
    assert summary["FirstZero:Max"] == 5.0
    assert summary["PctCor:Mean"] == pytest.approx(0.75)
    assert logs.table(EvalMode.TRAIN, TimeScale.RUN)[0]["Params"] == "Base"


def test_cycle_rows_can_be_dropped() -> None:
    stats = Stats()
    logs = SimLogs(stats, keep_cycles=False)
    stats.set_int("Cycle", 0)
    logs.log_row(EvalMode.TEST, TimeScale.CYCLE)
    assert logs.table(EvalMode.TEST, TimeScale.CYCLE) == []
    assert logs.row_count(EvalMode.TEST, TimeScale.CYCLE) == 1


def test_epoch_log_mirrors_to_csv(tmp_path) -> None:
    stats = Stats()
    logs = SimLogs(stats)
    path = tmp_path / "Fake_Base_epc.csv"
    logs.set_log_file(EvalMode.TRAIN, TimeScale.EPOCH, path)
    for epoch in range(3):
        stats.set_int("Epoch", epoch)
        stats.set_float("EpcSSE", 1.0 / 3.0)
        logs.log_row(EvalMode.TRAIN, TimeScale.EPOCH)
    logs.close_log_files()

    with path.open("r", newline="", encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert [row["Epoch"] for row in rows] == ["0", "1", "2"]
    assert rows[0]["SSE"] == "0.3333"
