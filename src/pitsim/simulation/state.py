"""Explicitly owned simulation state shared by the controller and the sequencer."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field

from pitsim.contracts.data import ITrialSource
from pitsim.contracts.logs import ILogs
from pitsim.contracts.network import INetwork, LayerRole, cast_layer_role
from pitsim.core.errors import AlreadyRunningError, ConfigurationError
from pitsim.simulation.configs import SimConfig
from pitsim.simulation.environment import FixedTableEnv
from pitsim.simulation.stats import Stats
from pitsim.simulation.time_state import TimeState


class LayerRoleAssignment:
    """Layer name -> :class:`LayerRole`, with a restorable baseline."""

    def __init__(self, roles: Mapping[str, LayerRole | str] | None = None) -> None:
        self._roles: dict[str, LayerRole] = {
            str(name): cast_layer_role(role) for name, role in (roles or {}).items()
        }
        self._baseline = dict(self._roles)

    @property
    def baseline(self) -> dict[str, LayerRole]:
        return dict(self._baseline)

    def get(self, layer: str) -> LayerRole | None:
        return self._roles.get(layer)

    def set(self, layer: str, role: LayerRole | str) -> LayerRole:
        value = cast_layer_role(role)
        self._roles[layer] = value
        return value

    def snapshot(self) -> dict[str, LayerRole]:
        return dict(self._roles)

    def changed_from_baseline(self) -> dict[str, LayerRole]:
        """Layers whose role differs from baseline, mapped to their baseline role."""

        restore: dict[str, LayerRole] = {}
        for layer, role in self._roles.items():
            base = self._baseline.get(layer)
            if base is not None and base != role:
                restore[layer] = base
        return restore

    def restore_baseline(self) -> dict[str, LayerRole]:
        restored = self.changed_from_baseline()
        self._roles = dict(self._baseline)
        return restored

    def __contains__(self, layer: object) -> bool:
        return layer in self._roles

    def __iter__(self) -> Iterator[str]:
        return iter(self._roles)

    def __len__(self) -> int:
        return len(self._roles)


class LesionMask:
    """Layer name -> active flag. Layers that were never set are active."""

    def __init__(self, inactive: Iterable[str] = ()) -> None:
        self._active: dict[str, bool] = {str(name): False for name in inactive}
        self._baseline = dict(self._active)

    def is_active(self, layer: str) -> bool:
        return self._active.get(layer, True)

    def set_active(self, layer: str, active: bool) -> None:
        self._active[layer] = bool(active)

    def lesioned(self) -> tuple[str, ...]:
        return tuple(name for name, active in self._active.items() if not active)

    def changed_from_baseline(self) -> dict[str, bool]:
        restore: dict[str, bool] = {}
        for layer, active in self._active.items():
            base = self._baseline.get(layer, True)
            if base != active:
                restore[layer] = base
        return restore

    def restore_baseline(self) -> dict[str, bool]:
        restored = self.changed_from_baseline()
        self._active = dict(self._baseline)
        return restored


@dataclass(slots=True)
class SimulationState:
    """Everything one training/protocol task mutates.

    A single task owns the state at a time; :meth:`claim` enforces that and
    backs the ``is_running`` flag exposed to control surfaces.
    """

    network: INetwork
    train_env: FixedTableEnv
    test_env: FixedTableEnv | None = None
    config: SimConfig = field(default_factory=SimConfig)
    roles: LayerRoleAssignment = field(default_factory=LayerRoleAssignment)
    lesions: LesionMask = field(default_factory=LesionMask)
    stats: Stats = field(default_factory=Stats)
    logs: ILogs | None = None
    time: TimeState = field(init=False)
    tables: dict[str, ITrialSource] = field(default_factory=dict)
    phase_name: str = ""
    stat_layer: str = ""
    needs_new_run: bool = False
    finished: bool = False
    _stop: threading.Event = field(default_factory=threading.Event, init=False, repr=False)
    _running: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _loop_depth: int = field(default=0, init=False, repr=False)

    def __post_init__(self) -> None:
        self.time = TimeState(cycles_per_quarter=self.config.cycles_per_quarter)
        self.stat_layer = self.stat_layer or self.config.stat_layer
        self.tables.setdefault(self.train_env.table.name, self.train_env.table)
        if self.test_env is not None:
            self.tables.setdefault(self.test_env.table.name, self.test_env.table)

    @property
    def is_running(self) -> bool:
        return self._running.locked()

    @property
    def in_loop(self) -> bool:
        """True while a training or protocol loop is executing."""

        return self._loop_depth > 0

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def request_stop(self) -> None:
        self._stop.set()

    def clear_stop(self) -> None:
        self._stop.clear()

    def try_claim(self) -> bool:
        return self._running.acquire(blocking=False)

    def release(self) -> None:
        if self._running.locked():
            self._running.release()

    @contextmanager
    def driving(self) -> Iterator[None]:
        """Mark a training or protocol loop as in flight; nests."""

        self._loop_depth += 1
        try:
            yield
        finally:
            self._loop_depth -= 1

    @contextmanager
    def claim(self) -> Iterator[SimulationState]:
        if not self.try_claim():
            raise AlreadyRunningError("A simulation task is already running")
        try:
            yield self
        finally:
            self.release()

    def resolve_layer(self, layer: str) -> str:
        names = set(self.network.layer_names())
        if layer not in names:
            raise ConfigurationError(
                f"Unknown layer '{layer}'",
                context={"layer": layer, "network": self.network.name},
            )
        return layer

    def resolve_table(self, name: str) -> ITrialSource:
        try:
            return self.tables[name]
        except KeyError as exc:
            known = ", ".join(sorted(self.tables)) or "<none>"
            raise ConfigurationError(
                f"Unknown trial table '{name}'. Known: {known}", context={"table": name}
            ) from exc

    def set_layer_role(self, layer: str, role: LayerRole | str) -> None:
        value = self.roles.set(layer, role)
        self.network.set_layer_role(layer, value)

    def set_layer_active(self, layer: str, active: bool) -> None:
        self.lesions.set_active(layer, active)
        self.network.set_layer_active(layer, active)

    def apply_structure(self) -> None:
        """Push the current role and lesion assignments to the network."""

        for layer, role in self.roles.snapshot().items():
            self.network.set_layer_role(layer, role)
        for layer in self.lesions.lesioned():
            self.network.set_layer_active(layer, False)

    def restore_baseline(self) -> None:
        for layer, active in self.lesions.restore_baseline().items():
            self.network.set_layer_active(layer, active)
        for layer, role in self.roles.restore_baseline().items():
            self.network.set_layer_role(layer, role)


__all__ = ["LayerRoleAssignment", "LesionMask", "SimulationState"]
