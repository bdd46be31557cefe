"""Simulation control layer: environment, timing, state, controller, runner."""

from pitsim.simulation.configs import SimConfig, coerce_sim_config
from pitsim.simulation.controller import RunController, RunOutcome, StoppingPolicy, StopReason
from pitsim.simulation.environment import Counter, FixedTableEnv
from pitsim.simulation.runner import RunnerSnapshot, SimulationRunner
from pitsim.simulation.state import LayerRoleAssignment, LesionMask, SimulationState
from pitsim.simulation.stats import EpochAccumulator, Stats
from pitsim.simulation.time_state import QUARTERS_PER_TRIAL, TimeState

__all__ = [
    "QUARTERS_PER_TRIAL",
    "Counter",
    "EpochAccumulator",
    "FixedTableEnv",
    "LayerRoleAssignment",
    "LesionMask",
    "RunController",
    "RunOutcome",
    "RunnerSnapshot",
    "SimConfig",
    "SimulationRunner",
    "SimulationState",
    "Stats",
    "StopReason",
    "StoppingPolicy",
    "TimeState",
    "coerce_sim_config",
]
