"""Data-source contracts (trial tables)."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class TrialRecord:
    """One named row of a trial table.

    ``values`` maps a field name (normally a layer name) to its flattened
    pattern.
    """

    name: str
    values: Mapping[str, tuple[float, ...]] = field(default_factory=dict)

    def get(self, field_name: str) -> tuple[float, ...] | None:
        return self.values.get(field_name)


@runtime_checkable
class ITrialSource(Protocol):
    """Ordered, replayable sequence of named trial records."""

    name: str

    def __len__(self) -> int:
        ...

    def __getitem__(self, index: int) -> TrialRecord:
        ...


__all__ = ["ITrialSource", "TrialRecord"]
