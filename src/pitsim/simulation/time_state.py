"""Per-trial timing state: cycles within quarters within one alpha cycle."""

from __future__ import annotations

from dataclasses import dataclass

QUARTERS_PER_TRIAL = 4


@dataclass(slots=True)
class TimeState:
    """Cycle-within-quarter and quarter-within-trial counters.

    One trial ("alpha cycle") is ``QUARTERS_PER_TRIAL`` quarters of
    ``cycles_per_quarter`` cycles each. The first three quarters form the
    minus (expectation) phase, the last one the plus (outcome) phase.
    """

    cycles_per_quarter: int = 25
    cycle: int = 0
    quarter: int = 0
    total_cycles: int = 0
    is_training: bool = False

    def __post_init__(self) -> None:
        self.cycles_per_quarter = int(self.cycles_per_quarter)
        if self.cycles_per_quarter <= 0:
            raise ValueError("cycles_per_quarter must be > 0")

    @property
    def is_plus_phase(self) -> bool:
        return self.quarter == QUARTERS_PER_TRIAL - 1

    @property
    def cycles_per_trial(self) -> int:
        return self.cycles_per_quarter * QUARTERS_PER_TRIAL

    def reset(self) -> None:
        self.cycle = 0
        self.quarter = 0
        self.total_cycles = 0

    def alpha_cycle_start(self, *, is_training: bool = False) -> None:
        self.reset()
        self.is_training = is_training

    def cycle_inc(self) -> None:
        self.cycle += 1
        self.total_cycles += 1

    def quarter_inc(self) -> None:
        self.quarter += 1
        self.cycle = 0


__all__ = ["QUARTERS_PER_TRIAL", "TimeState"]
