"""Public façade (stable API surface).

Only symbols re-exported from here are considered public and semver-stable.
Internal modules may change without notice.
"""

from pitsim.api import presets
from pitsim.api.builders import build_simulation
from pitsim.api.version import __version__
from pitsim.contracts.data import ITrialSource, TrialRecord
from pitsim.contracts.logs import EvalMode, ILogs, TimeScale
from pitsim.contracts.network import INetwork, LayerRole, TrialError
from pitsim.core.errors import (
    AlreadyRunningError,
    CheckpointNotFound,
    ConfigurationError,
    InvalidPatternShape,
    SimulationError,
)
from pitsim.engine.rate_network import RateNetwork
from pitsim.engine.specs import LayerSpec, ProjectionSpec, RateNetworkConfig
from pitsim.io.patterns import PatternTable, load_pattern_table, load_phase_table
from pitsim.monitors.logs import SimLogs
from pitsim.protocols.phases import Phase, ProtocolReport, lesion, phase_table_from_rows, set_roles
from pitsim.protocols.sequencer import PhaseSequencer
from pitsim.simulation.configs import SimConfig
from pitsim.simulation.controller import RunController, RunOutcome, StopReason, StoppingPolicy
from pitsim.simulation.environment import FixedTableEnv
from pitsim.simulation.runner import SimulationRunner
from pitsim.simulation.state import SimulationState
from pitsim.simulation.time_state import TimeState

__all__ = [
    "__version__",
    "presets",
    "build_simulation",
    # contracts
    "INetwork",
    "ILogs",
    "ITrialSource",
    "TrialRecord",
    "TrialError",
    "LayerRole",
    "EvalMode",
    "TimeScale",
    # errors
    "SimulationError",
    "ConfigurationError",
    "CheckpointNotFound",
    "InvalidPatternShape",
    "AlreadyRunningError",
    # simulation
    "SimConfig",
    "SimulationState",
    "FixedTableEnv",
    "TimeState",
    "RunController",
    "RunOutcome",
    "StopReason",
    "StoppingPolicy",
    "SimulationRunner",
    # protocols
    "Phase",
    "PhaseSequencer",
    "ProtocolReport",
    "lesion",
    "set_roles",
    "phase_table_from_rows",
    # io / logs
    "PatternTable",
    "load_pattern_table",
    "load_phase_table",
    "SimLogs",
    # engine
    "RateNetwork",
    "RateNetworkConfig",
    "LayerSpec",
    "ProjectionSpec",
]
