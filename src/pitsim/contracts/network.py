"""Network boundary contracts.

The controller never computes activations or weight changes itself. It drives
an engine through this interface:

- **Trial framing**: ``begin_trial`` / ``step_cycle`` / ``finalize_quarter``.
- **Learning**: ``compute_weight_delta`` strictly after the fourth quarter,
  then ``apply_weight_delta``.
- **Structure**: layer roles and active (lesion) flags, changed only between
  trials.
- **Persistence**: named, opaque weight checkpoints.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias, runtime_checkable

if TYPE_CHECKING:
    from pitsim.simulation.time_state import TimeState

Pattern: TypeAlias = Sequence[float] | Any  # noqa: UP040
DeltaHandle: TypeAlias = Any  # noqa: UP040


class LayerRole(StrEnum):
    INPUT = "input"
    TARGET = "target"
    COMPARE = "compare"


@dataclass(frozen=True, slots=True)
class TrialError:
    """Trial-level error statistics for one layer (minus-phase vs target)."""

    sse: float = 0.0
    avg_sse: float = 0.0
    cos_diff: float = 0.0


@runtime_checkable
class INetwork(Protocol):
    """Engine interface consumed by the run controller."""

    name: str

    def layer_names(self) -> Sequence[str]:
        ...

    def layer_size(self, layer: str) -> int:
        ...

    def begin_trial(self, is_training: bool) -> None:
        ...

    def step_cycle(self, time: TimeState) -> None:
        ...

    def finalize_quarter(self, time: TimeState) -> None:
        ...

    def compute_weight_delta(self) -> DeltaHandle:
        ...

    def apply_weight_delta(self, delta: DeltaHandle) -> None:
        ...

    def set_layer_role(self, layer: str, role: LayerRole) -> None:
        ...

    def set_layer_active(self, layer: str, active: bool) -> None:
        ...

    def apply_external_values(self, layer: str, pattern: Pattern) -> None:
        """Clamp/target values for ``layer``.

        Raises ``InvalidPatternShape`` when the pattern cardinality does not
        match ``layer_size(layer)``.
        """
        ...

    def trial_error(self, layer: str, tolerance: float) -> TrialError:
        ...

    def save_checkpoint(self, name: str) -> None:
        ...

    def load_checkpoint(self, name: str) -> None:
        """Raises ``CheckpointNotFound`` when ``name`` was never saved."""
        ...

    def reset_weights(self) -> None:
        ...


@runtime_checkable
class ISeedable(Protocol):
    """Optional hook: engines that own an RNG for weight initialization."""

    def seed(self, value: int) -> None:
        ...


@runtime_checkable
class IActivationProbe(Protocol):
    """Optional hook used by periodic PCA diagnostics."""

    def layer_activations(self, layer: str) -> Sequence[float]:
        ...


def cast_layer_role(value: LayerRole | str) -> LayerRole:
    if isinstance(value, LayerRole):
        return value
    token = str(value).strip().lower()
    try:
        return LayerRole(token)
    except ValueError as exc:
        supported = ", ".join(member.value for member in LayerRole)
        raise ValueError(f"Unsupported layer role '{value}'. Supported: {supported}") from exc


__all__ = [
    "DeltaHandle",
    "IActivationProbe",
    "INetwork",
    "ISeedable",
    "LayerRole",
    "Pattern",
    "TrialError",
    "cast_layer_role",
]
