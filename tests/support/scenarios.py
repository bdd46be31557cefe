from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pitsim.api.builders import build_simulation
from pitsim.contracts.network import LayerRole
from pitsim.simulation.controller import RunController
from pitsim.simulation.state import SimulationState

from .fake_network import RecordingNetwork
from .tables import make_table

FAKE_ROLES: dict[str, LayerRole] = {
    "Input": LayerRole.INPUT,
    "Output": LayerRole.TARGET,
}


def build_fake_simulation(
    *,
    n_rows: int = 4,
    network: RecordingNetwork | None = None,
    test_rows: int | None = None,
    config: Mapping[str, Any] | None = None,
    **kwargs: Any,
) -> tuple[SimulationState, RunController, RecordingNetwork]:
    """State/controller over a :class:`RecordingNetwork` with small defaults.

    ``config`` entries override a one-cycle-per-quarter, verbose-off setup
    that applies ``Input``/``Output`` and scores ``Output``.
    """

    net = network or RecordingNetwork()
    cfg: dict[str, Any] = {
        "max_epochs": 2,
        "cycles_per_quarter": 1,
        "applied_layers": ("Input", "Output"),
        "stat_layer": "Output",
        "pca_layers": (),
        "sequential": True,
    }
    cfg.update(config or {})
    test_table = make_table("Test", test_rows) if test_rows else None
    kwargs.setdefault("roles", FAKE_ROLES)
    state, controller = build_simulation(
        net,
        make_table("Train", n_rows),
        test_table=test_table,
        config=cfg,
        **kwargs,
    )
    return state, controller, net


__all__ = ["FAKE_ROLES", "build_fake_simulation"]
