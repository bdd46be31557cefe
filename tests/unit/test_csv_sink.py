from __future__ import annotations

import csv

import pytest

from pitsim.io.sinks import CsvSink

pytestmark = pytest.mark.unit


def _read(path):
    with path.open("r", newline="", encoding="utf-8") as handle:
        return list(csv.DictReader(handle))


def test_header_from_first_row_and_float_precision(tmp_path) -> None:
    path = tmp_path / "log.csv"
    with CsvSink(path) as sink:
        sink.write_row({"a": 1, "b": 0.123456789})
        sink.write_row({"a": 2, "c": "dropped"})
    rows = _read(path)
    assert rows == [{"a": "1", "b": "0.1235"}, {"a": "2", "b": ""}]


def test_explicit_fieldnames_and_delimiter(tmp_path) -> None:
    path = tmp_path / "log.tsv"
    sink = CsvSink(path, fieldnames=["x", "y"], delimiter="\t", precision=None)
    sink.write_row({"x": 0.1234567, "y": "z"})
    sink.close()
    assert path.read_text(encoding="utf-8").splitlines() == ["x\ty", "0.1234567\tz"]


def test_append_does_not_repeat_header(tmp_path) -> None:
    path = tmp_path / "log.csv"
    with CsvSink(path, fieldnames=["i"]) as sink:
        sink.write_row({"i": 0})
    with CsvSink(path, fieldnames=["i"], append=True) as sink:
        sink.write_row({"i": 1})
    assert [row["i"] for row in _read(path)] == ["0", "1"]


def test_close_is_idempotent_and_blocks_writes(tmp_path) -> None:
    sink = CsvSink(tmp_path / "log.csv")
    sink.close()
    sink.close()
    assert sink.closed
    with pytest.raises(RuntimeError, match="closed"):
        sink.write_row({"a": 1})
