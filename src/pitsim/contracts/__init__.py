"""Contracts (interfaces/protocols) for pitsim.

This package is *not* the public API surface. Only symbols re-exported from
:mod:`pitsim.api` are considered semver-stable.
"""

from pitsim.contracts.data import ITrialSource, TrialRecord
from pitsim.contracts.logs import EvalMode, ILogs, TimeScale
from pitsim.contracts.network import (
    DeltaHandle,
    IActivationProbe,
    INetwork,
    ISeedable,
    LayerRole,
    Pattern,
    TrialError,
    cast_layer_role,
)

__all__ = [
    # network boundary
    "DeltaHandle",
    "IActivationProbe",
    "INetwork",
    "ISeedable",
    "LayerRole",
    "Pattern",
    "TrialError",
    "cast_layer_role",
    # data sources
    "ITrialSource",
    "TrialRecord",
    # logging
    "EvalMode",
    "ILogs",
    "TimeScale",
]
