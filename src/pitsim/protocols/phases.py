"""Declarative phase descriptors for multi-phase training protocols."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, TypeAlias

from pitsim.contracts.network import LayerRole, cast_layer_role
from pitsim.core.errors import ConfigurationError
from pitsim.io.patterns import PhaseRow
from pitsim.simulation.controller import RunOutcome


@dataclass(frozen=True, slots=True)
class SetRole:
    layer: str
    role: LayerRole

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", cast_layer_role(self.role))


@dataclass(frozen=True, slots=True)
class SetActive:
    layer: str
    active: bool

    def __post_init__(self) -> None:
        object.__setattr__(self, "active", bool(self.active))


PhaseOperation: TypeAlias = SetRole | SetActive  # noqa: UP040


def set_roles(roles: Mapping[str, LayerRole | str]) -> tuple[SetRole, ...]:
    return tuple(SetRole(layer, cast_layer_role(role)) for layer, role in roles.items())


def lesion(*layers: str) -> tuple[SetActive, ...]:
    return tuple(SetActive(layer, False) for layer in layers)


@dataclass(frozen=True, slots=True)
class Phase:
    """One protocol step.

    ``table`` names a registered trial table. ``operations`` run in order
    before training; ``load_checkpoint`` is loaded after them and
    ``save_checkpoint`` is written once the phase has finished and baseline
    roles/lesions are restored. ``stat_layer`` and ``n_zero_stop`` override the
    run configuration for this phase only.
    """

    name: str
    table: str
    max_epochs: int
    operations: tuple[PhaseOperation, ...] = ()
    load_checkpoint: str | None = None
    save_checkpoint: str | None = None
    stat_layer: str | None = None
    n_zero_stop: int | None = None

    def __post_init__(self) -> None:
        if not str(self.name).strip():
            raise ValueError("Phase name must be non-empty")
        if int(self.max_epochs) <= 0:
            raise ValueError(f"Phase '{self.name}': max_epochs must be > 0")
        object.__setattr__(self, "max_epochs", int(self.max_epochs))
        object.__setattr__(self, "operations", tuple(self.operations))
        for op in self.operations:
            if not isinstance(op, (SetRole, SetActive)):
                raise TypeError(f"Phase '{self.name}': unsupported operation {op!r}")

    def layers(self) -> tuple[str, ...]:
        names = [op.layer for op in self.operations]
        if self.stat_layer:
            names.append(self.stat_layer)
        return tuple(dict.fromkeys(names))

    def with_max_epochs(self, max_epochs: int) -> Phase:
        return replace(self, max_epochs=int(max_epochs))


@dataclass(frozen=True, slots=True)
class PhaseResult:
    name: str
    run: int
    outcome: RunOutcome | None
    loaded: str | None = None
    saved: str | None = None

    @property
    def cancelled(self) -> bool:
        return self.outcome is None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "run": self.run,
            "loaded": self.loaded,
            "saved": self.saved,
            "cancelled": self.cancelled,
        }
        if self.outcome is not None:
            payload.update(
                {
                    "epochs": self.outcome.epochs,
                    "stop_reason": self.outcome.reason.value,
                    "n_zero": self.outcome.n_zero,
                    "first_zero": self.outcome.first_zero,
                }
            )
        return payload


@dataclass(slots=True)
class ProtocolReport:
    phases: tuple[str, ...]
    results: list[PhaseResult] = field(default_factory=list)
    cancelled: bool = False

    @property
    def completed_phases(self) -> tuple[str, ...]:
        return tuple(result.name for result in self.results if not result.cancelled)

    def to_dict(self) -> dict[str, Any]:
        return {
            "phases": list(self.phases),
            "cancelled": self.cancelled,
            "completed_phases": list(self.completed_phases),
            "results": [result.to_dict() for result in self.results],
        }


def phase_table_from_rows(
    rows: Iterable[PhaseRow],
    registry: Mapping[str, Phase],
) -> list[Phase]:
    """Expand ``Training``/``MaxEpoch`` rows into phases using named templates.

    The first phase never loads a checkpoint: it starts from the weights in
    memory, whatever order the rows come in.
    """

    phases: list[Phase] = []
    for row in rows:
        template = _lookup(registry, row.training)
        phase = template.with_max_epochs(row.max_epochs)
        if not phases and phase.load_checkpoint is not None:
            phase = replace(phase, load_checkpoint=None)
        phases.append(phase)
    if not phases:
        raise ConfigurationError("Phase table has no rows")
    return phases


def _lookup(registry: Mapping[str, Phase], name: str) -> Phase:
    key = name.strip()
    if key in registry:
        return registry[key]
    lowered = {k.lower(): v for k, v in registry.items()}
    if key.lower() in lowered:
        return lowered[key.lower()]
    known = ", ".join(sorted(registry)) or "<none>"
    raise ConfigurationError(f"Unknown phase '{name}'. Known: {known}", context={"phase": name})


def phase_names(phases: Sequence[Phase]) -> tuple[str, ...]:
    return tuple(phase.name for phase in phases)


__all__ = [
    "Phase",
    "PhaseOperation",
    "PhaseResult",
    "ProtocolReport",
    "SetActive",
    "SetRole",
    "lesion",
    "phase_names",
    "phase_table_from_rows",
    "set_roles",
]
