"""Core helpers (errors, optional torch access)."""

from pitsim.core.errors import (
    AlreadyRunningError,
    CheckpointNotFound,
    ConfigurationError,
    InvalidPatternShape,
    SimulationError,
)

__all__ = [
    "AlreadyRunningError",
    "CheckpointNotFound",
    "ConfigurationError",
    "InvalidPatternShape",
    "SimulationError",
]
