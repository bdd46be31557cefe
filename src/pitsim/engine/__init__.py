"""Reference rate-coded network engine (torch)."""

from pitsim.engine.rate_network import RateNetwork, WeightDelta, build_rate_network
from pitsim.engine.specs import (
    LayerSpec,
    ProjectionKind,
    ProjectionPattern,
    ProjectionSpec,
    RateNetworkConfig,
    bidirectional,
)

__all__ = [
    "LayerSpec",
    "ProjectionKind",
    "ProjectionPattern",
    "ProjectionSpec",
    "RateNetwork",
    "RateNetworkConfig",
    "WeightDelta",
    "bidirectional",
    "build_rate_network",
]
