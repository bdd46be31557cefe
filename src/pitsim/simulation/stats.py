"""Scalar statistics store shared between the controller and the logs."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TypeAlias

StatValue: TypeAlias = float | int | str  # noqa: UP040


@dataclass(slots=True)
class EpochAccumulator:
    """Running sums of trial statistics over the current epoch."""

    n_trials: int = 0
    sse: float = 0.0
    avg_sse: float = 0.0
    err: float = 0.0
    cos_diff: float = 0.0

    def add(self, *, sse: float, avg_sse: float, err: float, cos_diff: float) -> None:
        self.n_trials += 1
        self.sse += sse
        self.avg_sse += avg_sse
        self.err += err
        self.cos_diff += cos_diff

    def mean(self, total: float) -> float:
        return total / float(self.n_trials) if self.n_trials > 0 else 0.0

    def clear(self) -> None:
        self.n_trials = 0
        self.sse = 0.0
        self.avg_sse = 0.0
        self.err = 0.0
        self.cos_diff = 0.0


@dataclass(slots=True)
class Stats:
    """String-keyed scalar store.

    Written by the controller only; the logging collaborator reads it between
    trials.
    """

    values: dict[str, StatValue] = field(default_factory=dict)
    epoch_acc: EpochAccumulator = field(default_factory=EpochAccumulator)

    def set_float(self, name: str, value: float) -> None:
        self.values[name] = float(value)

    def set_int(self, name: str, value: int) -> None:
        self.values[name] = int(value)

    def set_string(self, name: str, value: str) -> None:
        self.values[name] = str(value)

    def get_float(self, name: str, default: float = 0.0) -> float:
        value = self.values.get(name, default)
        if isinstance(value, str):
            raise TypeError(f"Stat '{name}' is a string, not a float")
        return float(value)

    def get_int(self, name: str, default: int = 0) -> int:
        value = self.values.get(name, default)
        if isinstance(value, str):
            raise TypeError(f"Stat '{name}' is a string, not an int")
        return int(value)

    def get_string(self, name: str, default: str = "") -> str:
        return str(self.values.get(name, default))

    def has(self, name: str) -> bool:
        return name in self.values

    def snapshot(self, names: Iterable[str] | None = None) -> dict[str, StatValue]:
        if names is None:
            return dict(self.values)
        return {name: self.values[name] for name in names if name in self.values}

    def update(self, values: Mapping[str, StatValue]) -> None:
        self.values.update(values)

    def print(self, names: Iterable[str]) -> str:
        parts: list[str] = []
        for name in names:
            if name not in self.values:
                continue
            value = self.values[name]
            if isinstance(value, float):
                parts.append(f"{name}: {value:.4g}")
            else:
                parts.append(f"{name}: {value}")
        return "\t".join(parts)


__all__ = ["EpochAccumulator", "StatValue", "Stats"]
