"""Logging collaborator contracts.

The controller updates :class:`~pitsim.simulation.stats.Stats` and then
notifies the collaborator with a ``(mode, time)`` scope. Storage and
formatting are entirely the collaborator's concern.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable


class EvalMode(StrEnum):
    TRAIN = "Train"
    TEST = "Test"
    ANALYZE = "Analyze"


class TimeScale(StrEnum):
    CYCLE = "Cycle"
    TRIAL = "Trial"
    EPOCH = "Epoch"
    RUN = "Run"


@runtime_checkable
class ILogs(Protocol):
    """Receiver of per-cycle/trial/epoch/run log notifications."""

    def log_row(self, mode: EvalMode, time: TimeScale) -> None:
        ...

    def reset_log(self, mode: EvalMode, time: TimeScale) -> None:
        ...


__all__ = ["EvalMode", "ILogs", "TimeScale"]
