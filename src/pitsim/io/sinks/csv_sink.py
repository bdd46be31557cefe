"""Delimited-text sink used to mirror log tables to disk."""

from __future__ import annotations

import csv
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

LOG_PRECISION = 4


class CsvSink:
    """Write rows with a stable header.

    The header is fixed by ``fieldnames`` or by the first row; keys that
    appear later are dropped and missing keys are written empty. Floats are
    rounded to ``precision`` significant digits.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        fieldnames: Iterable[str] | None = None,
        delimiter: str = ",",
        precision: int | None = LOG_PRECISION,
        flush_every: int = 1,
        append: bool = False,
    ) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._delimiter = delimiter
        self._precision = precision
        self._flush_every = max(1, flush_every)
        self._should_write_header = True
        if append and self._path.exists():
            try:
                self._should_write_header = self._path.stat().st_size == 0
            except OSError:
                self._should_write_header = True
        self._file = self._path.open("a" if append else "w", newline="", encoding="utf-8")
        self._write_count = 0
        self._fieldnames = list(fieldnames) if fieldnames is not None else None
        self._writer: csv.DictWriter[str] | None = None
        if self._fieldnames is not None:
            self._open_writer(self._fieldnames)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def closed(self) -> bool:
        return self._file.closed

    def write_row(self, row: Mapping[str, Any]) -> None:
        if self._file.closed:
            raise RuntimeError(f"CsvSink for {self._path} is closed")
        if self._writer is None:
            self._fieldnames = list(row.keys())
            self._open_writer(self._fieldnames)
        assert self._writer is not None
        self._writer.writerow({key: self._format(value) for key, value in row.items()})
        self._write_count += 1
        if self._write_count % self._flush_every == 0:
            self._file.flush()

    def flush(self) -> None:
        if not self._file.closed:
            self._file.flush()

    def close(self) -> None:
        if self._file.closed:
            return
        self._file.flush()
        self._file.close()
        self._writer = None

    def __enter__(self) -> CsvSink:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _open_writer(self, fieldnames: list[str]) -> None:
        self._writer = csv.DictWriter(
            self._file,
            fieldnames=fieldnames,
            delimiter=self._delimiter,
            restval="",
            extrasaction="ignore",
        )
        if self._should_write_header:
            self._writer.writeheader()
            self._should_write_header = False

    def _format(self, value: Any) -> Any:
        if isinstance(value, float) and self._precision is not None:
            return f"{value:.{self._precision}g}"
        return value


__all__ = ["LOG_PRECISION", "CsvSink"]
