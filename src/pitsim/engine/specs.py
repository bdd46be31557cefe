"""Layer/projection specification DTOs for the reference rate network."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from pitsim.contracts.network import LayerRole, cast_layer_role


class ProjectionPattern(StrEnum):
    FULL = "full"
    ONE_TO_ONE = "one_to_one"


class ProjectionKind(StrEnum):
    FORWARD = "forward"
    BACK = "back"
    INHIB = "inhib"


@dataclass(frozen=True, slots=True)
class LayerSpec:
    """A 2D layer. ``role=None`` marks a hidden layer."""

    name: str
    shape: tuple[int, int] = (1, 1)
    role: LayerRole | None = None
    gain: float | None = None
    threshold: float | None = None
    tonic: float = 0.0

    def __post_init__(self) -> None:
        y, x = (int(self.shape[0]), int(self.shape[1]))
        if y <= 0 or x <= 0:
            raise ValueError(f"Layer '{self.name}': shape must be positive, got {self.shape}")
        object.__setattr__(self, "shape", (y, x))
        if self.role is not None:
            object.__setattr__(self, "role", cast_layer_role(self.role))

    @property
    def size(self) -> int:
        return self.shape[0] * self.shape[1]


@dataclass(frozen=True, slots=True)
class ProjectionSpec:
    """Connection from ``sender`` to ``receiver``.

    ``abs_scale`` multiplies the net input contribution directly;
    ``rel_scale`` is normalized against the other projections into the same
    receiver. ``fixed_weight`` pins every weight to one value and disables
    learning.
    """

    sender: str
    receiver: str
    pattern: ProjectionPattern = ProjectionPattern.FULL
    kind: ProjectionKind = ProjectionKind.FORWARD
    abs_scale: float = 1.0
    rel_scale: float = 1.0
    learn: bool = True
    fixed_weight: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "pattern", ProjectionPattern(self.pattern))
        object.__setattr__(self, "kind", ProjectionKind(self.kind))
        if self.fixed_weight is not None:
            object.__setattr__(self, "learn", False)

    @property
    def name(self) -> str:
        return f"{self.sender}To{self.receiver}"


def bidirectional(
    a: str,
    b: str,
    *,
    pattern: ProjectionPattern = ProjectionPattern.FULL,
    back_rel_scale: float = 0.3,
    abs_scale: float = 1.0,
) -> tuple[ProjectionSpec, ProjectionSpec]:
    """``a -> b`` forward plus ``b -> a`` back projection with a reduced relative scale."""

    return (
        ProjectionSpec(a, b, pattern=pattern, abs_scale=abs_scale),
        ProjectionSpec(b, a, pattern=pattern, kind=ProjectionKind.BACK, rel_scale=back_rel_scale),
    )


@dataclass(slots=True)
class RateNetworkConfig:
    learning_rate: float = 0.04
    init_mean: float = 0.5
    init_var: float = 0.25
    gain: float = 8.0
    threshold: float = 0.25
    integ_rate: float = 0.3
    device: str | None = None
    dtype: str | None = "float32"
    checkpoint_dir: Path | None = None

    def __post_init__(self) -> None:
        self.learning_rate = float(self.learning_rate)
        if self.learning_rate < 0.0:
            raise ValueError("learning_rate must be >= 0")
        self.init_mean = float(self.init_mean)
        self.init_var = max(0.0, float(self.init_var))
        self.gain = float(self.gain)
        self.threshold = float(self.threshold)
        self.integ_rate = float(self.integ_rate)
        if not 0.0 < self.integ_rate <= 1.0:
            raise ValueError("integ_rate must be in (0, 1]")
        self.device = str(self.device).lower().strip() if self.device else None
        self.checkpoint_dir = Path(self.checkpoint_dir) if self.checkpoint_dir is not None else None


__all__ = [
    "LayerSpec",
    "ProjectionKind",
    "ProjectionPattern",
    "ProjectionSpec",
    "RateNetworkConfig",
    "bidirectional",
]
