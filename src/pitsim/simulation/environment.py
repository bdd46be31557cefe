"""Fixed-table environment: Run ⊃ Epoch ⊃ Trial counters over a trial table."""

from __future__ import annotations

import random
from dataclasses import dataclass

from pitsim.contracts.data import ITrialSource, TrialRecord


@dataclass(slots=True)
class Counter:
    """Monotonic counter with change tracking and an optional wrap maximum.

    ``max <= 0`` means unbounded.
    """

    cur: int = 0
    prev: int = -1
    changed: bool = False
    max: int = 0

    def init(self) -> None:
        self.prev = -1
        self.cur = 0
        self.changed = False

    def same(self) -> None:
        self.changed = False

    def incr(self) -> bool:
        """Advance by one; returns True when the maximum was hit and ``cur`` wrapped to 0."""

        self.changed = True
        self.prev = self.cur
        self.cur += 1
        if self.max > 0 and self.cur >= self.max:
            self.cur = 0
            return True
        return False

    def set(self, value: int) -> bool:
        if value == self.cur:
            return False
        self.prev = self.cur
        self.cur = int(value)
        self.changed = True
        return True


class FixedTableEnv:
    """Replayable enumerator over an :class:`ITrialSource`.

    The first :meth:`step` after :meth:`init` presents row 0 without advancing,
    so every row of every epoch is visited exactly once while ``init`` still
    leaves ``trial.cur == 0``.
    """

    def __init__(
        self,
        name: str,
        table: ITrialSource,
        *,
        sequential: bool = True,
        max_runs: int = 0,
        max_epochs: int = 0,
        seed: int | None = None,
    ) -> None:
        self.name = name
        self.sequential = bool(sequential)
        self.run = Counter(max=max(0, int(max_runs)))
        self.epoch = Counter(max=max(0, int(max_epochs)))
        self.trial = Counter()
        self._rng = random.Random(seed)
        self._table = table
        self._order: list[int] = []
        self._primed = False
        self._validate(table)
        self.trial.max = len(table)
        self._reset_order()

    @property
    def table(self) -> ITrialSource:
        return self._table

    def set_table(self, table: ITrialSource) -> None:
        self._validate(table)
        self._table = table
        self.trial.max = len(table)
        self._reset_order()

    def reseed(self, seed: int | None) -> None:
        self._rng.seed(seed)

    def init(self, run: int) -> None:
        self.run.set(int(run))
        self.run.same()
        self.epoch.init()
        self.trial.init()
        self._primed = False
        self._reset_order()

    def step(self) -> tuple[bool, bool]:
        """Advance one trial; returns ``(epoch_changed, run_changed)``."""

        self.epoch.same()
        self.run.same()
        if not self._primed:
            self._primed = True
            self.trial.same()
            return False, False
        epoch_changed = False
        run_changed = False
        if self.trial.incr():
            self._reset_order()
            epoch_changed = True
            if self.epoch.incr():
                self.run.incr()
                run_changed = True
        return epoch_changed, run_changed

    def current_trial(self) -> TrialRecord:
        return self._table[self.row_index()]

    @property
    def trial_name(self) -> str:
        return self.current_trial().name

    def row_index(self) -> int:
        """Table row of the current trial (differs from ``trial.cur`` when permuted)."""

        return self._order[self.trial.cur]

    def set_trial(self, index: int) -> int:
        """Jump to presentation index ``index``; returns the previous index."""

        if index < 0 or index >= len(self._table):
            raise IndexError(f"{self.name}: trial index {index} out of range [0, {len(self._table)})")
        previous = self.trial.cur
        self.trial.cur = int(index)
        return previous

    def find_trials(self, text: str) -> list[int]:
        needle = text.strip().lower()
        return [idx for idx in range(len(self._table)) if needle in self._table[idx].name.lower()]

    def _reset_order(self) -> None:
        self._order = list(range(len(self._table)))
        if not self.sequential:
            self._rng.shuffle(self._order)

    def _validate(self, table: ITrialSource) -> None:
        if len(table) <= 0:
            raise ValueError(f"{self.name}: trial table '{getattr(table, 'name', '?')}' is empty")


__all__ = ["Counter", "FixedTableEnv"]
