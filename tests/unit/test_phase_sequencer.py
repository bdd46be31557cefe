from __future__ import annotations

import pytest

from pitsim.contracts.logs import EvalMode, TimeScale
from pitsim.contracts.network import LayerRole
from pitsim.core.errors import CheckpointNotFound, ConfigurationError
from pitsim.protocols.phases import Phase, lesion, set_roles
from pitsim.protocols.sequencer import PhaseSequencer
from pitsim.simulation.controller import RunController, StopReason
from tests.support import RecordingNetwork, build_fake_simulation, make_table

pytestmark = pytest.mark.unit

STRUCTURE_CALLS = ("set_layer_role", "set_layer_active", "load_checkpoint", "save_checkpoint")


def _phases() -> list[Phase]:
    return [
        Phase(
            name="A",
            table="A",
            max_epochs=2,
            operations=(*set_roles({"Output": LayerRole.INPUT}), *lesion("Hidden")),
            save_checkpoint="trained",
        ),
        Phase(
            name="B",
            table="B",
            max_epochs=1,
            operations=lesion("Output"),
            load_checkpoint="trained",
            save_checkpoint="trained",
            stat_layer="Input",
        ),
    ]


def _sequencer(phases: list[Phase] | None = None, **kwargs):
    state, controller, net = build_fake_simulation(**kwargs)
    sequencer = PhaseSequencer(
        state,
        controller,
        phases if phases is not None else _phases(),
        tables={"A": make_table("A", 4), "B": make_table("B", 4)},
    )
    controller.init()
    net.calls.clear()
    return state, controller, net, sequencer


def test_phases_apply_structure_then_restore_before_saving() -> None:
    _state, _controller, net, sequencer = _sequencer()

    report = sequencer.run()

    assert report.completed_phases == ("A", "B")
    assert report.cancelled is False
    assert net.call_names(*STRUCTURE_CALLS) == [
        ("set_layer_role", ("Output", LayerRole.INPUT)),
        ("set_layer_active", ("Hidden", False)),
        ("set_layer_active", ("Hidden", True)),
        ("set_layer_role", ("Output", LayerRole.TARGET)),
        ("save_checkpoint", "trained"),
        ("set_layer_active", ("Output", False)),
        ("load_checkpoint", "trained"),
        ("set_layer_active", ("Output", True)),
        ("save_checkpoint", "trained"),
    ]


def test_checkpoint_round_trip_between_phases() -> None:
    _state, _controller, net, sequencer = _sequencer()
    report = sequencer.run()
    first, second = report.results
    assert first.outcome is not None and second.outcome is not None
    assert first.outcome.epochs == 2
    assert second.outcome.epochs == 1
    assert first.outcome.reason is StopReason.MAX_EPOCHS
    # 8 deltas in phase A, then 4 more on top of the loaded weights
    assert net.checkpoints["trained"] == 12
    assert second.loaded == "trained"
    assert second.saved == "trained"


def test_phase_overrides_are_scoped_to_the_phase() -> None:
    state, _controller, net, sequencer = _sequencer()
    report = sequencer.run()
    assert report.results[1].outcome is not None
    assert report.results[1].outcome.phase == "B"
    assert state.stat_layer == "Output"
    assert state.phase_name == ""
    assert net.active == {"Input": True, "Hidden": True, "Output": True}
    assert state.roles.snapshot() == {"Input": LayerRole.INPUT, "Output": LayerRole.TARGET}
    assert state.train_env.table.name == "B"


def test_each_phase_logs_its_own_run_row() -> None:
    state, _controller, _net, sequencer = _sequencer()
    sequencer.run()
    assert state.logs is not None
    rows = state.logs.table(EvalMode.TRAIN, TimeScale.RUN)
    assert [row["Phase"] for row in rows] == ["A", "B"]


def test_missing_checkpoint_reports_phase_context() -> None:
    phases = _phases()
    phases[0] = Phase(name="A", table="A", max_epochs=1, operations=lesion("Hidden"))
    _state, _controller, net, sequencer = _sequencer(phases)

    with pytest.raises(CheckpointNotFound) as info:
        sequencer.run()

    ctx = info.value.context
    assert ctx["phase"] == "B"
    assert ctx["checkpoint"] == "trained"
    assert ctx["completed_phases"] == ("A",)
    # baseline structure is restored even on failure
    assert net.active["Output"] is True


def test_unknown_table_is_rejected_before_training() -> None:
    state, controller, net = build_fake_simulation()
    phases = [Phase(name="X", table="Nope", max_epochs=1)]
    with pytest.raises(ConfigurationError) as info:
        PhaseSequencer(state, controller, phases)
    assert info.value.context["phase"] == "X"
    assert net.train_trials == 0


def test_unknown_layer_in_operations_is_rejected() -> None:
    state, controller, _net = build_fake_simulation()
    phases = [Phase(name="X", table="Train", max_epochs=1, operations=lesion("Ghost"))]
    with pytest.raises(ConfigurationError, match="Ghost") as info:
        PhaseSequencer(state, controller, phases)
    assert info.value.context["phase"] == "X"


def test_empty_protocol_is_rejected() -> None:
    state, controller, _net = build_fake_simulation()
    with pytest.raises(ConfigurationError):
        PhaseSequencer(state, controller, [])


def test_controller_must_share_state() -> None:
    state, _controller, _net = build_fake_simulation()
    _other_state, other_controller, _ = build_fake_simulation()
    assert isinstance(other_controller, RunController)
    with pytest.raises(ConfigurationError):
        PhaseSequencer(state, other_controller, [Phase(name="X", table="Train", max_epochs=1)])


def test_repetitions_use_next_run_index_and_fresh_weights() -> None:
    state, _controller, net, sequencer = _sequencer()
    report = sequencer.run(runs=2)
    assert [result.run for result in report.results] == [0, 0, 1, 1]
    assert net.count("reset_weights") == 2
    assert net.seeds[-2:] == [1, 2]


def test_stop_request_cancels_protocol_without_saving() -> None:
    state, controller, net, sequencer = _sequencer()

    class _StopOnThirdTrial:
        trials = 0

        def log_row(self, mode: EvalMode, time: TimeScale) -> None:
            if (mode, time) == (EvalMode.TRAIN, TimeScale.TRIAL):
                self.trials += 1
                if self.trials == 3:
                    controller.stop()

        def reset_log(self, mode: EvalMode, time: TimeScale) -> None:
            _ = (mode, time)

    state.logs = _StopOnThirdTrial()
    report = sequencer.run()

    assert report.cancelled is True
    assert report.completed_phases == ()
    assert report.results[0].cancelled is True
    assert net.count("save_checkpoint") == 0
    assert net.active["Hidden"] is True


def test_phase_zero_stop_override() -> None:
    net = RecordingNetwork(sse_schedule=lambda _trial: 0.0)
    phases = [Phase(name="A", table="A", max_epochs=10, n_zero_stop=2)]
    _state, _controller, _net, sequencer = _sequencer(phases, network=net)
    report = sequencer.run()
    outcome = report.results[0].outcome
    assert outcome is not None
    assert outcome.reason is StopReason.ZERO_ERROR
    assert outcome.epochs == 2
    assert outcome.first_zero == 0


def test_report_to_dict() -> None:
    _state, _controller, _net, sequencer = _sequencer()
    payload = sequencer.run().to_dict()
    assert payload["phases"] == ["A", "B"]
    assert payload["completed_phases"] == ["A", "B"]
    assert payload["results"][0]["stop_reason"] == "max_epochs"
    assert payload["results"][1]["loaded"] == "trained"


def test_stop_after_protocol_is_a_no_op_and_rerun_completes() -> None:
    state, controller, _net, sequencer = _sequencer()
    sequencer.run()

    controller.stop()
    assert state.stop_requested is False
    assert state.in_loop is False

    report = sequencer.run()
    assert report.cancelled is False
    assert report.completed_phases == ("A", "B")


def test_run_clears_a_stale_stop_request() -> None:
    state, _controller, _net, sequencer = _sequencer()
    state.request_stop()
    report = sequencer.run()
    assert report.cancelled is False
    assert report.completed_phases == ("A", "B")


def test_role_change_on_layer_without_baseline_role_is_rejected() -> None:
    state, controller, net = build_fake_simulation()
    phases = [
        Phase(name="A", table="Train", max_epochs=1),
        Phase(name="Swap", table="Train", max_epochs=1, operations=set_roles({"Hidden": LayerRole.TARGET})),
    ]
    with pytest.raises(ConfigurationError, match="Hidden") as info:
        PhaseSequencer(state, controller, phases)
    assert info.value.context["phase"] == "Swap"
    assert info.value.context["layer"] == "Hidden"
    assert net.count("set_layer_role") == 0


def test_phase_lesion_blocks_external_input_to_that_layer() -> None:
    phases = [Phase(name="L", table="A", max_epochs=2, operations=lesion("Output"))]
    _state, _controller, net, sequencer = _sequencer(phases)
    net.applied.clear()

    report = sequencer.run()

    assert report.completed_phases == ("L",)
    assert net.train_trials == 8
    assert {layer for layer, _values in net.applied} == {"Input"}
    assert net.active["Output"] is True
