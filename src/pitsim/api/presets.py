"""Opinionated depression/PIT network and protocol presets."""

from __future__ import annotations

from pitsim.contracts.network import LayerRole
from pitsim.engine.rate_network import RateNetwork
from pitsim.engine.specs import (
    LayerSpec,
    ProjectionKind,
    ProjectionPattern,
    ProjectionSpec,
    RateNetworkConfig,
    bidirectional,
)
from pitsim.protocols.phases import Phase, lesion, set_roles

NETWORK_NAME = "Depress"
INSTRUMENTAL = "INSTRUMENTAL"
PAVLOV = "PAVLOV"
INSTRUMENTAL_TABLE = "Instr"
PAVLOV_TABLE = "Pvlv"
TEST_TABLE = "DepressTest"
TRAINED_CHECKPOINT = "trained.wts"

BASELINE_ROLES: dict[str, LayerRole] = {
    "EnviroFeatures": LayerRole.INPUT,
    "InteroState": LayerRole.INPUT,
    "MBApp": LayerRole.INPUT,
    "MBAv": LayerRole.INPUT,
    "Approach": LayerRole.TARGET,
    "Avoidance": LayerRole.TARGET,
    "Behavior": LayerRole.TARGET,
    "Cost": LayerRole.INPUT,
    "DyDA": LayerRole.INPUT,
}


def depression_layers(*, hidden_shape: tuple[int, int] = (5, 20)) -> tuple[LayerSpec, ...]:
    return (
        LayerSpec("EnviroFeatures", (1, 8), LayerRole.INPUT),
        LayerSpec("InteroState", (1, 8), LayerRole.INPUT),
        LayerSpec("MBApp", (1, 5), LayerRole.INPUT),
        LayerSpec("MBAv", (1, 3), LayerRole.INPUT),
        LayerSpec("Approach", (1, 5), LayerRole.TARGET, gain=12.0),
        LayerSpec("Avoidance", (1, 3), LayerRole.TARGET, gain=12.0, threshold=0.49),
        LayerSpec("Behavior", (1, 16), LayerRole.TARGET, gain=12.0),
        LayerSpec("VTA", (1, 1), None, tonic=0.4),
        LayerSpec("Cost", (1, 16), LayerRole.INPUT),
        LayerSpec("DyDA", (1, 1), LayerRole.INPUT),
        LayerSpec("Hidden1", hidden_shape, None),
        LayerSpec("Hidden2", hidden_shape, None),
    )


def depression_projections() -> tuple[ProjectionSpec, ...]:
    full = ProjectionPattern.FULL
    one2one = ProjectionPattern.ONE_TO_ONE
    inhib = ProjectionKind.INHIB
    return (
        ProjectionSpec("EnviroFeatures", "Hidden1", full),
        ProjectionSpec("InteroState", "Hidden1", full),
        ProjectionSpec("MBApp", "Approach", one2one, fixed_weight=1.0),
        ProjectionSpec("MBAv", "Avoidance", one2one, fixed_weight=1.0),
        ProjectionSpec("VTA", "Approach", full, fixed_weight=0.5),
        *bidirectional("Hidden1", "Approach"),
        *bidirectional("Hidden1", "Avoidance"),
        *bidirectional("Approach", "Hidden2"),
        *bidirectional("Avoidance", "Hidden2"),
        *bidirectional("Hidden2", "Behavior", abs_scale=1.5),
        ProjectionSpec("VTA", "Avoidance", full, inhib, fixed_weight=0.5),
        ProjectionSpec("Cost", "Behavior", one2one, inhib, abs_scale=0.5, fixed_weight=0.5),
        ProjectionSpec("DyDA", "Approach", full, inhib, abs_scale=0.3, fixed_weight=1.0),
        ProjectionSpec("DyDA", "VTA", full, inhib, abs_scale=0.5, fixed_weight=1.0),
    )


def make_depression_network(
    *,
    config: RateNetworkConfig | None = None,
    seed: int | None = None,
    hidden_shape: tuple[int, int] = (5, 20),
) -> RateNetwork:
    return RateNetwork(
        NETWORK_NAME,
        depression_layers(hidden_shape=hidden_shape),
        depression_projections(),
        config=config,
        seed=seed,
    )


def instrumental_phase(
    max_epochs: int,
    *,
    load_checkpoint: str | None = TRAINED_CHECKPOINT,
    save_checkpoint: str | None = TRAINED_CHECKPOINT,
    table: str = INSTRUMENTAL_TABLE,
) -> Phase:
    """Approach/Avoidance drive Behavior; sensory input and Hidden1 are lesioned."""

    return Phase(
        name=INSTRUMENTAL,
        table=table,
        max_epochs=max_epochs,
        operations=(
            *set_roles(
                {
                    "EnviroFeatures": LayerRole.INPUT,
                    "InteroState": LayerRole.INPUT,
                    "Approach": LayerRole.INPUT,
                    "Avoidance": LayerRole.INPUT,
                    "Behavior": LayerRole.TARGET,
                }
            ),
            *lesion("EnviroFeatures", "InteroState", "Hidden1"),
        ),
        load_checkpoint=load_checkpoint,
        save_checkpoint=save_checkpoint,
        stat_layer="Behavior",
    )


def pavlov_phase(
    max_epochs: int,
    *,
    load_checkpoint: str | None = TRAINED_CHECKPOINT,
    save_checkpoint: str | None = TRAINED_CHECKPOINT,
    table: str = PAVLOV_TABLE,
) -> Phase:
    """Sensory input predicts Approach/Avoidance; Hidden2 and Behavior are lesioned."""

    return Phase(
        name=PAVLOV,
        table=table,
        max_epochs=max_epochs,
        operations=(
            *set_roles(
                {
                    "EnviroFeatures": LayerRole.INPUT,
                    "InteroState": LayerRole.INPUT,
                    "Approach": LayerRole.TARGET,
                    "Avoidance": LayerRole.TARGET,
                    "Behavior": LayerRole.TARGET,
                }
            ),
            *lesion("Hidden2", "Behavior"),
        ),
        load_checkpoint=load_checkpoint,
        save_checkpoint=save_checkpoint,
        stat_layer="Approach",
    )


# Templates keyed by the ``Training`` column of a phase table; ``MaxEpoch`` replaces max_epochs.
PIT_PHASE_TEMPLATES: dict[str, Phase] = {
    INSTRUMENTAL: instrumental_phase(1),
    PAVLOV: pavlov_phase(1),
}


def depression_pit_phases(
    *,
    instrumental_epochs: int = 100,
    pavlov_epochs: int = 100,
    pavlov_first: bool = False,
) -> list[Phase]:
    first, second = (
        (pavlov_phase(pavlov_epochs, load_checkpoint=None), instrumental_phase(instrumental_epochs))
        if pavlov_first
        else (instrumental_phase(instrumental_epochs, load_checkpoint=None), pavlov_phase(pavlov_epochs))
    )
    return [first, second]


__all__ = [
    "BASELINE_ROLES",
    "INSTRUMENTAL",
    "INSTRUMENTAL_TABLE",
    "NETWORK_NAME",
    "PAVLOV",
    "PAVLOV_TABLE",
    "PIT_PHASE_TEMPLATES",
    "TEST_TABLE",
    "TRAINED_CHECKPOINT",
    "depression_layers",
    "depression_pit_phases",
    "depression_projections",
    "instrumental_phase",
    "make_depression_network",
    "pavlov_phase",
]
