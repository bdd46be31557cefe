"""Multi-phase training protocol sequencer."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from pitsim.contracts.data import ITrialSource
from pitsim.core.errors import ConfigurationError, SimulationError
from pitsim.protocols.phases import Phase, PhaseResult, ProtocolReport, SetActive, SetRole
from pitsim.simulation.controller import RunController
from pitsim.simulation.state import SimulationState


class PhaseSequencer:
    """Run an ordered list of phases against one controller.

    Per phase: reset the epoch window, swap the training table, apply role and
    lesion operations, load the phase checkpoint, train until the phase
    stopping policy fires, restore baseline structure and save the phase
    checkpoint. Phases run strictly in order; a phase's save completes before
    the next phase starts.
    """

    def __init__(
        self,
        state: SimulationState,
        controller: RunController,
        phases: Sequence[Phase],
        tables: Mapping[str, ITrialSource] | None = None,
        *,
        fresh_weights: bool = True,
    ) -> None:
        if controller.state is not state:
            raise ConfigurationError("Controller is bound to a different SimulationState")
        self.state = state
        self.controller = controller
        self.phases = tuple(phases)
        self.fresh_weights = bool(fresh_weights)
        for name, table in (tables or {}).items():
            state.tables[name] = table
        self._validate()

    @property
    def phase_names(self) -> tuple[str, ...]:
        return tuple(phase.name for phase in self.phases)

    def run(self, *, runs: int = 1, reset_stop: bool = True) -> ProtocolReport:
        """Execute the protocol ``runs`` times; each repetition uses the next run index."""

        st = self.state
        if reset_stop:
            st.clear_stop()
        report = ProtocolReport(phases=self.phase_names)
        try:
            with st.driving():
                return self._run_protocol(report, runs)
        finally:
            st.phase_name = ""
            st.stat_layer = st.config.stat_layer

    def _run_protocol(self, report: ProtocolReport, runs: int) -> ProtocolReport:
        st = self.state
        for rep in range(max(1, int(runs))):
            if rep > 0:
                st.train_env.run.set(st.train_env.run.cur + 1)
            if self.fresh_weights or st.needs_new_run:
                self.controller.new_run()
            if st.config.verbose:
                print(f"[pit] run={st.train_env.run.cur} phases={','.join(self.phase_names)}")
            for phase in self.phases:
                if st.stop_requested:
                    report.cancelled = True
                    return report
                result = self._run_phase(phase, report)
                report.results.append(result)
                if result.cancelled:
                    report.cancelled = True
                    return report
        return report

    def _run_phase(self, phase: Phase, report: ProtocolReport) -> PhaseResult:
        st = self.state
        ctl = self.controller
        env = st.train_env
        run = env.run.cur
        st.phase_name = phase.name
        st.stat_layer = phase.stat_layer or st.config.stat_layer

        env.epoch.init()
        self._reset_phase_stats()
        env.set_table(st.tables[phase.table])
        env.init(run)
        if st.test_env is not None:
            st.test_env.init(run)

        try:
            for op in phase.operations:
                if isinstance(op, SetRole):
                    st.set_layer_role(op.layer, op.role)
                elif isinstance(op, SetActive):
                    st.set_layer_active(op.layer, op.active)
            if phase.load_checkpoint:
                st.network.load_checkpoint(phase.load_checkpoint)
            outcome = ctl.train_phase(phase.max_epochs, n_zero_stop=phase.n_zero_stop)
        except SimulationError as exc:
            exc.attach_context(
                phase=phase.name,
                completed_phases=report.completed_phases,
            )
            raise
        finally:
            st.restore_baseline()

        if outcome is None:
            if st.config.verbose:
                print(f"[pit] phase={phase.name} cancelled at epoch={env.epoch.cur}")
            return PhaseResult(name=phase.name, run=run, outcome=None, loaded=phase.load_checkpoint)

        if phase.save_checkpoint:
            st.network.save_checkpoint(phase.save_checkpoint)
        if st.config.verbose:
            print(
                f"[pit] phase={phase.name} epochs={outcome.epochs} "
                f"reason={outcome.reason.value} saved={phase.save_checkpoint}"
            )
        return PhaseResult(
            name=phase.name,
            run=run,
            outcome=outcome,
            loaded=phase.load_checkpoint,
            saved=phase.save_checkpoint,
        )

    def _reset_phase_stats(self) -> None:
        stats = self.state.stats
        stats.set_int("FirstZero", -1)
        stats.set_int("NZero", 0)
        stats.set_string("StopReason", "")
        stats.epoch_acc.clear()

    def _validate(self) -> None:
        if not self.phases:
            raise ConfigurationError("Protocol has no phases")
        st = self.state
        baseline = st.roles.baseline
        for phase in self.phases:
            try:
                st.resolve_table(phase.table)
                for layer in phase.layers():
                    st.resolve_layer(layer)
                for op in phase.operations:
                    # Roles are restored from the baseline after every phase.
                    if isinstance(op, SetRole) and op.layer not in baseline:
                        raise ConfigurationError(
                            f"Layer '{op.layer}' has no baseline role to restore after the phase",
                            context={"layer": op.layer},
                        )
            except ConfigurationError as exc:
                exc.attach_context(phase=phase.name)
                raise
        for layer in st.roles:
            st.resolve_layer(layer)
        for layer in st.lesions.lesioned():
            st.resolve_layer(layer)


__all__ = ["PhaseSequencer"]
