from __future__ import annotations

import pytest

from pitsim.contracts.network import LayerRole
from pitsim.core.errors import AlreadyRunningError, ConfigurationError
from pitsim.simulation.state import LayerRoleAssignment, LesionMask
from pitsim.simulation.stats import Stats
from tests.support import build_fake_simulation

pytestmark = pytest.mark.unit


def test_stats_typed_access() -> None:
    stats = Stats()
    stats.set_float("SSE", 1.5)
    stats.set_int("Epoch", 3)
    stats.set_string("TrialName", "t0")
    assert stats.get_float("SSE") == 1.5
    assert stats.get_int("Epoch") == 3
    assert stats.get_string("TrialName") == "t0"
    assert stats.get_int("Missing", -1) == -1
    with pytest.raises(TypeError):
        stats.get_float("TrialName")
    assert stats.snapshot(["SSE", "Nope"]) == {"SSE": 1.5}
    assert stats.print(["Epoch", "SSE"]) == "Epoch: 3\tSSE: 1.5"


def test_epoch_accumulator_mean() -> None:
    acc = Stats().epoch_acc
    assert acc.mean(acc.sse) == 0.0
    acc.add(sse=1.0, avg_sse=0.5, err=1.0, cos_diff=0.2)
    acc.add(sse=3.0, avg_sse=1.5, err=0.0, cos_diff=0.4)
    assert acc.mean(acc.sse) == pytest.approx(2.0)
    assert acc.mean(acc.err) == pytest.approx(0.5)
    acc.clear()
    assert acc.n_trials == 0


def test_role_assignment_restores_baseline() -> None:
    roles = LayerRoleAssignment({"A": "input", "B": LayerRole.TARGET})
    roles.set("B", "input")
    roles.set("C", LayerRole.TARGET)
    assert roles.changed_from_baseline() == {"B": LayerRole.TARGET}
    assert roles.restore_baseline() == {"B": LayerRole.TARGET}
    assert roles.snapshot() == {"A": LayerRole.INPUT, "B": LayerRole.TARGET}
    assert "C" not in roles
    assert len(roles) == 2


def test_lesion_mask_restores_baseline() -> None:
    mask = LesionMask(["H"])
    assert mask.is_active("X") is True
    assert mask.lesioned() == ("H",)
    mask.set_active("H", True)
    mask.set_active("X", False)
    assert mask.restore_baseline() == {"H": False, "X": True}
    assert mask.lesioned() == ("H",)


def test_state_claim_is_exclusive() -> None:
    state, _controller, _net = build_fake_simulation()
    with state.claim():
        assert state.is_running is True
        with pytest.raises(AlreadyRunningError):
            with state.claim():
                pass
    assert state.is_running is False


def test_state_resolves_tables_and_layers() -> None:
    state, _controller, _net = build_fake_simulation(test_rows=2)
    assert set(state.tables) == {"Train", "Test"}
    assert state.resolve_table("Train") is state.train_env.table
    with pytest.raises(ConfigurationError) as info:
        state.resolve_table("Nope")
    assert info.value.context["table"] == "Nope"
    with pytest.raises(ConfigurationError):
        state.resolve_layer("Nope")


def test_state_time_follows_config() -> None:
    state, _controller, _net = build_fake_simulation(config={"cycles_per_quarter": 7})
    assert state.time.cycles_per_quarter == 7
    assert state.stat_layer == "Output"
