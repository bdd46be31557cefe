"""Trial-table loaders for tab-separated pattern files.

Two header styles are understood:

- emergent tables: an optional ``_H:`` marker column, ``$Name`` and one
  column per unit such as ``%EnviroFeatures[2:0,0]<2:1,8>``, ``%EnviroFeatures[2:0,1]``.
  Data rows carry a ``_D:`` marker.
- plain tables: ``Name`` plus one column per unit (``Layer``, ``Layer[3]`` or
  ``Layer_3``). Columns sharing a base name are concatenated in file order.
"""

from __future__ import annotations

import csv
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from pitsim.contracts.data import TrialRecord

_TYPE_PREFIXES = "$%#|@^"
_MARKER_COLUMNS = {"_H:", "_D:"}
_NAME_COLUMNS = {"name", "trialname"}
_UNIT_SUFFIX = re.compile(r"_(\d+)$")


@dataclass(slots=True)
class PatternTable:
    """In-memory :class:`~pitsim.contracts.data.ITrialSource`."""

    name: str
    records: list[TrialRecord] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)

    def __getitem__(self, index: int) -> TrialRecord:
        return self.records[index]

    def names(self) -> list[str]:
        return [record.name for record in self.records]

    def fields(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for record in self.records:
            for key in record.values:
                seen.setdefault(key, None)
        return tuple(seen)

    @classmethod
    def from_rows(cls, name: str, rows: Iterable[Mapping[str, object]]) -> PatternTable:
        """Build from ``{"Name": ..., "<Layer>": [values...]}`` mappings."""

        records: list[TrialRecord] = []
        for idx, row in enumerate(rows):
            trial_name = str(row.get("Name", f"{name}_{idx}"))
            values: dict[str, tuple[float, ...]] = {}
            for key, value in row.items():
                if key == "Name":
                    continue
                values[str(key)] = _as_pattern(value)
            records.append(TrialRecord(name=trial_name, values=values))
        return cls(name=name, records=records)


@dataclass(frozen=True, slots=True)
class PhaseRow:
    training: str
    max_epochs: int


def load_pattern_table(
    path: str | Path,
    *,
    name: str | None = None,
    delimiter: str = "\t",
) -> PatternTable:
    path = Path(path)
    table_name = name or path.stem
    with path.open("r", newline="", encoding="utf-8") as handle:
        reader = csv.reader(handle, delimiter=delimiter)
        header = _next_nonempty(reader)
        if header is None:
            raise ValueError(f"{path}: empty pattern file")
        columns = [_column_base(cell) for cell in header]
        name_idx = _find_name_column(columns)
        records: list[TrialRecord] = []
        for row_idx, row in enumerate(reader):
            if not row or all(not cell.strip() for cell in row):
                continue
            if len(row) < len(columns):
                raise ValueError(
                    f"{path}: row {row_idx + 2} has {len(row)} cells, expected {len(columns)}"
                )
            grouped: dict[str, list[float]] = {}
            for col_idx, base in enumerate(columns):
                if col_idx == name_idx or base is None:
                    continue
                grouped.setdefault(base, []).append(_parse_float(row[col_idx], path=path, column=header[col_idx]))
            trial_name = row[name_idx].strip() if name_idx is not None else f"{table_name}_{row_idx}"
            records.append(
                TrialRecord(
                    name=trial_name,
                    values={key: tuple(values) for key, values in grouped.items()},
                )
            )
    if not records:
        raise ValueError(f"{path}: no trial rows")
    return PatternTable(name=table_name, records=records)


def load_phase_table(path: str | Path, *, delimiter: str = "\t") -> list[PhaseRow]:
    """Read a protocol table with ``Training`` and ``MaxEpoch`` columns."""

    path = Path(path)
    with path.open("r", newline="", encoding="utf-8") as handle:
        reader = csv.reader(handle, delimiter=delimiter)
        header = _next_nonempty(reader)
        if header is None:
            raise ValueError(f"{path}: empty phase table")
        columns = [(_column_base(cell) or "").lower() for cell in header]
        try:
            training_idx = columns.index("training")
            epochs_idx = columns.index("maxepoch")
        except ValueError as exc:
            raise ValueError(f"{path}: phase table needs 'Training' and 'MaxEpoch' columns") from exc
        rows: list[PhaseRow] = []
        for row in reader:
            if not row or all(not cell.strip() for cell in row):
                continue
            rows.append(
                PhaseRow(
                    training=row[training_idx].strip(),
                    max_epochs=int(float(row[epochs_idx])),
                )
            )
    return rows


def _column_base(cell: str) -> str | None:
    text = cell.strip()
    if not text or text in _MARKER_COLUMNS:
        return None
    if text[0] in _TYPE_PREFIXES:
        text = text[1:]
    for stop in ("[", "<"):
        pos = text.find(stop)
        if pos >= 0:
            text = text[:pos]
    match = _UNIT_SUFFIX.search(text)
    if match:
        text = text[: match.start()]
    return text or None


def _find_name_column(columns: Sequence[str | None]) -> int | None:
    for idx, base in enumerate(columns):
        if base is not None and base.lower() in _NAME_COLUMNS:
            return idx
    return None


def _next_nonempty(reader: Iterable[list[str]]) -> list[str] | None:
    for row in reader:
        if row and any(cell.strip() for cell in row):
            return row
    return None


def _parse_float(text: str, *, path: Path, column: str) -> float:
    try:
        return float(text)
    except ValueError as exc:
        raise ValueError(f"{path}: column '{column}' has non-numeric value '{text}'") from exc


def _as_pattern(value: object) -> tuple[float, ...]:
    if isinstance(value, (int, float)):
        return (float(value),)
    if isinstance(value, Iterable) and not isinstance(value, (str, bytes)):
        return tuple(float(v) for v in value)
    raise TypeError(f"Cannot interpret {type(value).__name__} as a pattern")


__all__ = ["PatternTable", "PhaseRow", "load_pattern_table", "load_phase_table"]
