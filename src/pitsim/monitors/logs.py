"""In-memory log tables keyed by ``(mode, time)`` scope, with optional CSV mirroring."""

from __future__ import annotations

import statistics
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pitsim.contracts.logs import EvalMode, TimeScale
from pitsim.io.sinks import CsvSink

if TYPE_CHECKING:
    from pitsim.simulation.stats import Stats

Row = dict[str, Any]
Scope = tuple[EvalMode, TimeScale]

_TRIAL_COLUMNS: dict[str, str] = {
    "Run": "Run",
    "Epoch": "Epoch",
    "Phase": "Phase",
    "Trial": "Trial",
    "TrialName": "TrialName",
    "Err": "TrlErr",
    "SSE": "TrlSSE",
    "AvgSSE": "TrlAvgSSE",
    "CosDiff": "TrlCosDiff",
}
_EPOCH_COLUMNS: dict[str, str] = {
    "Run": "Run",
    "Epoch": "Epoch",
    "Phase": "Phase",
    "SSE": "EpcSSE",
    "AvgSSE": "EpcAvgSSE",
    "PctErr": "EpcPctErr",
    "PctCor": "EpcPctCor",
    "CosDiff": "EpcCosDiff",
    "NZero": "NZero",
    "FirstZero": "FirstZero",
}
_RUN_COLUMNS: dict[str, str] = {
    "Run": "Run",
    "Epoch": "Epoch",
    "Phase": "Phase",
    "StopReason": "StopReason",
    "FirstZero": "FirstZero",
    "NZero": "NZero",
    "SSE": "EpcSSE",
    "AvgSSE": "EpcAvgSSE",
    "PctErr": "EpcPctErr",
    "PctCor": "EpcPctCor",
    "CosDiff": "EpcCosDiff",
}
_CYCLE_COLUMNS: dict[str, str] = {
    "Run": "Run",
    "Epoch": "Epoch",
    "Trial": "Trial",
    "TrialName": "TrialName",
    "Cycle": "Cycle",
}
_ANALYZE_COLUMNS: dict[str, str] = {
    "Run": "Run",
    "Epoch": "Epoch",
    "Phase": "Phase",
}

DEFAULT_COLUMNS: dict[Scope, dict[str, str]] = {
    (EvalMode.TRAIN, TimeScale.TRIAL): _TRIAL_COLUMNS,
    (EvalMode.TRAIN, TimeScale.EPOCH): _EPOCH_COLUMNS,
    (EvalMode.TRAIN, TimeScale.RUN): _RUN_COLUMNS,
    (EvalMode.TEST, TimeScale.TRIAL): _TRIAL_COLUMNS,
    (EvalMode.TEST, TimeScale.CYCLE): _CYCLE_COLUMNS,
    (EvalMode.ANALYZE, TimeScale.EPOCH): _ANALYZE_COLUMNS,
}
_INDEXED_SCOPES = {TimeScale.TRIAL: "Trial", TimeScale.CYCLE: "Cycle"}
_RUN_STAT_COLUMNS = ("FirstZero", "PctCor")


class SimLogs:
    """Logging collaborator that snapshots :class:`Stats` into per-scope tables.

    Trial and Cycle rows are written at the row given by the current ``Trial``
    or ``Cycle`` stat, so each table holds one epoch (or one trial) of data.
    Other scopes append. ``(Test, Epoch)`` rows summarize the test trial table
    and also refresh the ``TestErrors``/``TestErrorStats`` misc tables;
    ``(Train, Run)`` rows refresh ``RunStats``.
    """

    def __init__(
        self,
        stats: Stats,
        *,
        params_name: str = "Base",
        columns: Mapping[Scope, Mapping[str, str]] | None = None,
        keep_cycles: bool = True,
    ) -> None:
        self.stats = stats
        self.params_name = params_name
        self.keep_cycles = bool(keep_cycles)
        self._columns: dict[Scope, dict[str, str]] = {
            scope: dict(cols) for scope, cols in (columns or DEFAULT_COLUMNS).items()
        }
        self._tables: dict[Scope, list[Row]] = {}
        self._counts: dict[Scope, int] = {}
        self._sinks: dict[Scope, CsvSink] = {}
        self.misc_tables: dict[str, list[Row]] = {}

    # ------------------------------------------------------------------
    # ILogs
    # ------------------------------------------------------------------
    def log_row(self, mode: EvalMode, time: TimeScale) -> None:
        scope = (EvalMode(mode), TimeScale(time))
        self._counts[scope] = self._counts.get(scope, 0) + 1
        if scope[1] == TimeScale.CYCLE and not self.keep_cycles:
            return
        if scope == (EvalMode.TEST, TimeScale.EPOCH):
            row = self._test_epoch_row()
            self._log_test_errors()
        else:
            row = self._snapshot(scope)
        table = self._tables.setdefault(scope, [])
        index_stat = _INDEXED_SCOPES.get(scope[1])
        if index_stat is not None:
            _put_row(table, self.stats.get_int(index_stat), row)
        else:
            table.append(row)
        sink = self._sinks.get(scope)
        if sink is not None:
            sink.write_row(row)
        if scope == (EvalMode.TRAIN, TimeScale.RUN):
            self._log_run_stats()

    def reset_log(self, mode: EvalMode, time: TimeScale) -> None:
        self._tables.pop((EvalMode(mode), TimeScale(time)), None)

    # ------------------------------------------------------------------
    # access
    # ------------------------------------------------------------------
    def table(self, mode: EvalMode, time: TimeScale) -> list[Row]:
        return list(self._tables.get((EvalMode(mode), TimeScale(time)), []))

    def row_count(self, mode: EvalMode, time: TimeScale) -> int:
        """Number of ``log_row`` notifications received for the scope."""

        return self._counts.get((EvalMode(mode), TimeScale(time)), 0)

    def set_log_file(self, mode: EvalMode, time: TimeScale, path: str | Path) -> CsvSink:
        scope = (EvalMode(mode), TimeScale(time))
        previous = self._sinks.pop(scope, None)
        if previous is not None:
            previous.close()
        sink = CsvSink(path)
        self._sinks[scope] = sink
        return sink

    def close_log_files(self) -> None:
        sinks = list(self._sinks.values())
        self._sinks.clear()
        for sink in sinks:
            sink.close()

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------
    def _snapshot(self, scope: Scope) -> Row:
        columns = self._columns.get(scope)
        row: Row = {}
        if scope[1] == TimeScale.RUN:
            row["Params"] = self.params_name
        if columns is None:
            row.update(self.stats.snapshot())
            return row
        for column, stat in columns.items():
            if self.stats.has(stat):
                row[column] = self.stats.values[stat]
        if scope[1] in {TimeScale.EPOCH, TimeScale.RUN}:
            for name, value in self.stats.values.items():
                if "_PCA_" in name:
                    row[name] = value
        return row

    def _test_epoch_row(self) -> Row:
        trials = self._tables.get((EvalMode.TEST, TimeScale.TRIAL), [])
        row: Row = {
            "Run": self.stats.get_int("Run"),
            "Epoch": self.stats.get_int("Epoch"),
            "Phase": self.stats.get_string("Phase"),
            "NTrials": len(trials),
        }
        if trials:
            pct_err = statistics.fmean(float(t.get("Err", 0.0)) for t in trials)
            row["SSE"] = statistics.fmean(float(t.get("SSE", 0.0)) for t in trials)
            row["AvgSSE"] = statistics.fmean(float(t.get("AvgSSE", 0.0)) for t in trials)
            row["PctErr"] = pct_err
            row["PctCor"] = 1.0 - pct_err
            row["CosDiff"] = statistics.fmean(float(t.get("CosDiff", 0.0)) for t in trials)
        return row

    def _log_test_errors(self) -> None:
        trials = self._tables.get((EvalMode.TEST, TimeScale.TRIAL), [])
        errors = [dict(t) for t in trials if float(t.get("Err", 0.0)) > 0]
        self.misc_tables["TestErrors"] = errors
        self.misc_tables["TestErrorStats"] = [
            {"SSE:Sum": sum(float(t.get("SSE", 0.0)) for t in errors)}
        ]

    def _log_run_stats(self) -> None:
        runs = self._tables.get((EvalMode.TRAIN, TimeScale.RUN), [])
        groups: dict[str, list[Row]] = {}
        for run_row in runs:
            groups.setdefault(str(run_row.get("Params", "")), []).append(run_row)
        summary: list[Row] = []
        for params, rows in groups.items():
            out: Row = {"Params": params}
            for column in _RUN_STAT_COLUMNS:
                out.update(_describe(column, [float(r[column]) for r in rows if column in r]))
            summary.append(out)
        self.misc_tables["RunStats"] = summary


def _put_row(table: list[Row], index: int, row: Row) -> None:
    index = max(0, int(index))
    if index < len(table):
        table[index] = row
        return
    while len(table) < index:
        table.append({})
    table.append(row)


def _describe(column: str, values: Sequence[float]) -> Row:
    if not values:
        return {f"{column}:Count": 0}
    return {
        f"{column}:Count": len(values),
        f"{column}:Mean": statistics.fmean(values),
        f"{column}:Std": statistics.pstdev(values) if len(values) > 1 else 0.0,
        f"{column}:Min": min(values),
        f"{column}:Max": max(values),
    }


__all__ = ["DEFAULT_COLUMNS", "SimLogs"]
