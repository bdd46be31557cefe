"""Assemble a ready-to-run state/controller pair from a network and tables."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from pitsim.contracts.data import ITrialSource
from pitsim.contracts.network import INetwork, LayerRole
from pitsim.monitors.logs import SimLogs
from pitsim.simulation.configs import SimConfig, coerce_sim_config
from pitsim.simulation.controller import RunController
from pitsim.simulation.environment import FixedTableEnv
from pitsim.simulation.state import LayerRoleAssignment, LesionMask, SimulationState


def build_simulation(
    network: INetwork,
    train_table: ITrialSource,
    *,
    test_table: ITrialSource | None = None,
    config: SimConfig | Mapping[str, Any] | None = None,
    roles: Mapping[str, LayerRole | str] | None = None,
    lesioned: Iterable[str] = (),
    tables: Mapping[str, ITrialSource] | None = None,
    logs: bool = True,
) -> tuple[SimulationState, RunController]:
    """Wire environments, stats and logs around ``network``.

    The training environment visits rows in permuted order unless
    ``config.sequential``; the test environment is always sequential.
    ``roles`` is the baseline restored after every phase; a
    :class:`~pitsim.protocols.sequencer.PhaseSequencer` rejects phases that
    re-role a layer missing from it.
    """

    cfg = coerce_sim_config(config)
    train_env = FixedTableEnv(
        "TrainEnv",
        train_table,
        sequential=cfg.sequential,
        max_runs=cfg.end_run,
        seed=cfg.run_seed(cfg.start_run),
    )
    test_env = None
    if test_table is not None:
        test_env = FixedTableEnv("TestEnv", test_table, sequential=True, max_runs=cfg.end_run)

    state = SimulationState(
        network=network,
        train_env=train_env,
        test_env=test_env,
        config=cfg,
        roles=LayerRoleAssignment(roles),
        lesions=LesionMask(lesioned),
        tables=dict(tables or {}),
    )
    if logs:
        state.logs = SimLogs(state.stats, params_name=cfg.params_name)
    return state, RunController(state)


__all__ = ["build_simulation"]
