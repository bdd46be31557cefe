"""Run controller: the Run/Epoch/Trial/Cycle state machine.

One training trial is ``step env -> (epoch boundary) -> apply inputs ->
alpha cycle -> trial stats -> log``. The alpha cycle always runs four
quarters; weight deltas are computed only after the fourth quarter and only
in training mode.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from enum import StrEnum

from pitsim.contracts.logs import EvalMode, TimeScale
from pitsim.contracts.network import IActivationProbe, ISeedable, TrialError
from pitsim.core.errors import ConfigurationError, SimulationError
from pitsim.monitors.pca import ActivationPCA
from pitsim.simulation.environment import FixedTableEnv
from pitsim.simulation.state import SimulationState
from pitsim.simulation.time_state import QUARTERS_PER_TRIAL

EPOCH_PROGRESS_STATS: tuple[str, ...] = ("EpcSSE", "EpcPctErr", "NZero")


class StopReason(StrEnum):
    MAX_EPOCHS = "max_epochs"
    ZERO_ERROR = "zero_error"


@dataclass(frozen=True, slots=True)
class StoppingPolicy:
    """Stop when ``epoch >= max_epochs`` or after ``n_zero_stop`` zero-error epochs.

    ``n_zero_stop <= 0`` disables the zero-error criterion. When both criteria
    hold on the same epoch the run is reported as converged.
    """

    max_epochs: int
    n_zero_stop: int = -1

    def __post_init__(self) -> None:
        if int(self.max_epochs) <= 0:
            raise ValueError("max_epochs must be > 0")

    def evaluate(self, *, epoch: int, n_zero: int) -> StopReason | None:
        if self.n_zero_stop > 0 and n_zero >= self.n_zero_stop:
            return StopReason.ZERO_ERROR
        if epoch >= self.max_epochs:
            return StopReason.MAX_EPOCHS
        return None


@dataclass(frozen=True, slots=True)
class RunOutcome:
    run: int
    epochs: int
    reason: StopReason
    n_zero: int
    first_zero: int
    phase: str = ""
    finished: bool = False


class RunController:
    """Drives training and testing trials against :class:`SimulationState`."""

    def __init__(self, state: SimulationState) -> None:
        self.state = state
        cfg = state.config
        self._applied_layers = tuple(state.resolve_layer(name) for name in cfg.applied_layers)
        state.resolve_layer(state.stat_layer)
        self._policy = StoppingPolicy(cfg.max_epochs, cfg.n_zero_stop)
        self._phase_policy: StoppingPolicy | None = None
        self._warned_missing: set[str] = set()
        self._pca: ActivationPCA | None = None
        if cfg.pca_interval > 0 and isinstance(state.network, IActivationProbe):
            known = set(state.network.layer_names())
            layers = [name for name in cfg.pca_layers if name in known]
            if layers:
                self._pca = ActivationPCA(layers)

    @property
    def policy(self) -> StoppingPolicy:
        return self._phase_policy or self._policy

    @property
    def applied_layers(self) -> tuple[str, ...]:
        return self._applied_layers

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def init(self) -> None:
        """Start over from ``start_run`` with fresh weights and cleared stats."""

        st = self.state
        cfg = st.config
        st.clear_stop()
        st.finished = False
        st.train_env.run.max = cfg.end_run
        st.train_env.init(cfg.start_run)
        st.apply_structure()
        self.new_run()

    def new_run(self) -> None:
        st = self.state
        run = st.train_env.run.cur
        self._seed_run(run)
        st.train_env.init(run)
        if st.test_env is not None:
            st.test_env.init(run)
        st.time.reset()
        st.network.reset_weights()
        self.init_stats()
        self._stat_counters(st.train_env)
        if st.logs is not None:
            st.logs.reset_log(EvalMode.TRAIN, TimeScale.EPOCH)
            st.logs.reset_log(EvalMode.TEST, TimeScale.EPOCH)
        if self._pca is not None:
            self._pca.clear()
        st.needs_new_run = False

    def init_stats(self) -> None:
        stats = self.state.stats
        stats.set_float("TrlErr", 0.0)
        stats.set_float("TrlSSE", 0.0)
        stats.set_float("TrlAvgSSE", 0.0)
        stats.set_float("TrlCosDiff", 0.0)
        stats.set_int("FirstZero", -1)
        stats.set_int("NZero", 0)
        stats.set_string("StopReason", "")
        stats.epoch_acc.clear()

    def stop(self) -> None:
        """Request a cooperative stop, honored between trials.

        Outside an active loop or task there is nothing to stop, and the call
        leaves the state untouched.
        """

        st = self.state
        if not (st.in_loop or st.is_running):
            return
        st.request_stop()

    # ------------------------------------------------------------------
    # training
    # ------------------------------------------------------------------
    def train_trial(self, *, advance_run: bool = True) -> RunOutcome | None:
        """Run one training trial; returns the outcome when the run ends."""

        st = self.state
        if advance_run and st.finished:
            return None
        if st.needs_new_run:
            self.new_run()
        env = st.train_env
        epoch_changed, _ = env.step()
        if epoch_changed:
            outcome = self._epoch_boundary(advance_run=advance_run)
            if outcome is not None:
                return outcome
        self._run_trial(env, train=True)
        return None

    def train_epoch(self, *, reset_stop: bool = True) -> RunOutcome | None:
        st = self.state
        if reset_stop:
            st.clear_stop()
        cur_epoch = st.train_env.epoch.cur
        with st.driving():
            while not st.stop_requested:
                outcome = self.train_trial()
                if outcome is not None or st.finished:
                    return outcome
                if st.train_env.epoch.cur != cur_epoch:
                    break
        return None

    def train_run(self, *, reset_stop: bool = True) -> RunOutcome | None:
        st = self.state
        if reset_stop:
            st.clear_stop()
        with st.driving():
            while not st.stop_requested and not st.finished:
                outcome = self.train_trial()
                if outcome is not None:
                    return outcome
        return None

    def train(self, *, reset_stop: bool = True) -> list[RunOutcome]:
        """Train from the current point until all runs finish or a stop is requested."""

        st = self.state
        if reset_stop:
            st.clear_stop()
        outcomes: list[RunOutcome] = []
        with st.driving():
            while not st.stop_requested and not st.finished:
                outcome = self.train_trial()
                if outcome is not None:
                    outcomes.append(outcome)
        return outcomes

    def train_phase(self, max_epochs: int, *, n_zero_stop: int | None = None) -> RunOutcome | None:
        """Train within the current run until the phase stopping policy fires.

        Returns ``None`` when a stop request interrupted the phase.
        """

        st = self.state
        zero_stop = st.config.n_zero_stop if n_zero_stop is None else int(n_zero_stop)
        self._phase_policy = StoppingPolicy(int(max_epochs), zero_stop)
        try:
            with st.driving():
                while not st.stop_requested:
                    outcome = self.train_trial(advance_run=False)
                    if outcome is not None:
                        return outcome
            return None
        finally:
            self._phase_policy = None

    def run_end(self, reason: StopReason, *, advance_run: bool = True) -> RunOutcome:
        st = self.state
        cfg = st.config
        env = st.train_env
        stats = st.stats
        stats.set_string("StopReason", reason.value)
        stats.set_int("Run", env.run.cur)
        stats.set_int("Epoch", env.epoch.cur)
        self._log(EvalMode.TRAIN, TimeScale.RUN)
        if cfg.save_weights:
            name = cfg.weights_file_name(st.network.name, run=env.run.cur, epoch=env.epoch.cur)
            if cfg.verbose:
                print(f"[pitsim] saving weights to {name}")
            st.network.save_checkpoint(name)
        outcome = RunOutcome(
            run=env.run.cur,
            epochs=env.epoch.cur,
            reason=reason,
            n_zero=stats.get_int("NZero"),
            first_zero=stats.get_int("FirstZero", -1),
            phase=st.phase_name,
        )
        if cfg.verbose:
            print(
                f"[pitsim] run={outcome.run} done epochs={outcome.epochs} "
                f"reason={reason.value} first_zero={outcome.first_zero}"
            )
        if not advance_run:
            return outcome
        if env.run.incr():
            st.finished = True
            return RunOutcome(
                run=outcome.run,
                epochs=outcome.epochs,
                reason=outcome.reason,
                n_zero=outcome.n_zero,
                first_zero=outcome.first_zero,
                phase=outcome.phase,
                finished=True,
            )
        st.needs_new_run = True
        return outcome

    # ------------------------------------------------------------------
    # testing
    # ------------------------------------------------------------------
    def test_trial(self, *, return_on_change: bool = False) -> bool:
        """Run one testing trial; returns True when the test epoch wrapped."""

        env = self._test_env()
        epoch_changed, _ = env.step()
        if epoch_changed:
            self._log(EvalMode.TEST, TimeScale.EPOCH)
            if return_on_change:
                return True
        self._run_trial(env, train=False)
        return epoch_changed

    def test_all(self) -> None:
        st = self.state
        env = self._test_env()
        env.init(st.train_env.run.cur)
        while True:
            changed = self.test_trial(return_on_change=True)
            if changed or st.stop_requested:
                break

    def test_item(self, index: int) -> TrialError:
        """Test the item at presentation ``index`` without moving the test sequence."""

        env = self._test_env()
        previous = env.set_trial(index)
        try:
            self.apply_inputs(env)
            self.alpha_cycle(train=False)
            return self.trial_stats()
        finally:
            env.trial.cur = previous

    # ------------------------------------------------------------------
    # trial building blocks
    # ------------------------------------------------------------------
    def apply_inputs(self, env: FixedTableEnv) -> None:
        st = self.state
        record = env.current_trial()
        for layer in self._applied_layers:
            if not st.lesions.is_active(layer):
                continue
            pattern = record.get(layer)
            if pattern is None:
                if layer not in self._warned_missing:
                    self._warned_missing.add(layer)
                    warnings.warn(
                        f"Trial table '{env.table.name}' has no values for layer '{layer}'; skipping.",
                        RuntimeWarning,
                        stacklevel=2,
                    )
                continue
            st.network.apply_external_values(layer, pattern)

    def alpha_cycle(self, *, train: bool) -> None:
        st = self.state
        net = st.network
        time = st.time
        env = st.train_env if train else self._test_env()
        net.begin_trial(train)
        time.alpha_cycle_start(is_training=train)
        for _quarter in range(QUARTERS_PER_TRIAL):
            for _cycle in range(time.cycles_per_quarter):
                net.step_cycle(time)
                if not train:
                    self._stat_counters(env)
                    self._log(EvalMode.TEST, TimeScale.CYCLE)
                time.cycle_inc()
            net.finalize_quarter(time)
            time.quarter_inc()
        self._stat_counters(env)
        if train:
            delta = net.compute_weight_delta()
            net.apply_weight_delta(delta)

    def trial_stats(self) -> TrialError:
        st = self.state
        err = st.network.trial_error(st.stat_layer, st.config.tolerance)
        stats = st.stats
        stats.set_float("TrlSSE", err.sse)
        stats.set_float("TrlAvgSSE", err.avg_sse)
        stats.set_float("TrlCosDiff", err.cos_diff)
        stats.set_float("TrlErr", 1.0 if err.sse > 0 else 0.0)
        return err

    def epoch_stats(self, epoch: int) -> None:
        """Fold the epoch accumulator into ``Epc*`` stats and the zero-error streak."""

        stats = self.state.stats
        acc = stats.epoch_acc
        pct_err = acc.mean(acc.err)
        stats.set_float("EpcSSE", acc.mean(acc.sse))
        stats.set_float("EpcAvgSSE", acc.mean(acc.avg_sse))
        stats.set_float("EpcPctErr", pct_err)
        stats.set_float("EpcPctCor", 1.0 - pct_err if acc.n_trials > 0 else 0.0)
        stats.set_float("EpcCosDiff", acc.mean(acc.cos_diff))
        if acc.n_trials > 0 and pct_err == 0.0:
            if stats.get_int("FirstZero", -1) < 0:
                stats.set_int("FirstZero", epoch)
            stats.set_int("NZero", stats.get_int("NZero") + 1)
        else:
            stats.set_int("NZero", 0)
        acc.clear()

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------
    def _epoch_boundary(self, *, advance_run: bool) -> RunOutcome | None:
        st = self.state
        cfg = st.config
        epoch = st.train_env.epoch.cur
        completed = epoch - 1
        self.epoch_stats(completed)
        st.stats.set_int("Epoch", completed)
        if self._pca is not None and cfg.pca_interval > 0 and completed % cfg.pca_interval == 0:
            self._pca.compute(st.stats)
            self._log(EvalMode.ANALYZE, TimeScale.EPOCH)
        self._log(EvalMode.TRAIN, TimeScale.EPOCH)
        if cfg.verbose:
            print(f"[pitsim] run={st.train_env.run.cur} epoch={completed}\t{st.stats.print(EPOCH_PROGRESS_STATS)}")
        if cfg.test_interval > 0 and epoch % cfg.test_interval == 0 and st.test_env is not None:
            self.test_all()
        reason = self.policy.evaluate(epoch=epoch, n_zero=st.stats.get_int("NZero"))
        if reason is None:
            return None
        return self.run_end(reason, advance_run=advance_run)

    def _run_trial(self, env: FixedTableEnv, *, train: bool) -> None:
        st = self.state
        try:
            self.apply_inputs(env)
            self.alpha_cycle(train=train)
            err = self.trial_stats()
        except SimulationError as exc:
            exc.attach_context(
                run=st.train_env.run.cur,
                epoch=st.train_env.epoch.cur,
                trial=env.trial.cur,
                trial_name=env.trial_name,
                mode=(EvalMode.TRAIN if train else EvalMode.TEST).value,
            )
            if st.phase_name:
                exc.attach_context(phase=st.phase_name)
            raise
        if not train:
            self._log(EvalMode.TEST, TimeScale.TRIAL)
            return
        st.stats.epoch_acc.add(
            sse=err.sse,
            avg_sse=err.avg_sse,
            err=1.0 if err.sse > 0 else 0.0,
            cos_diff=err.cos_diff,
        )
        self._log(EvalMode.TRAIN, TimeScale.TRIAL)
        cfg = st.config
        if self._pca is not None and st.train_env.epoch.cur % cfg.pca_interval == 0:
            self._pca.record(st.network)  # type: ignore[arg-type]

    def _stat_counters(self, env: FixedTableEnv) -> None:
        st = self.state
        stats = st.stats
        stats.set_int("Run", st.train_env.run.cur)
        stats.set_int("Epoch", st.train_env.epoch.cur)
        stats.set_int("Trial", env.trial.cur)
        stats.set_string("TrialName", env.trial_name)
        stats.set_int("Cycle", st.time.cycle)
        stats.set_string("Phase", st.phase_name)

    def _seed_run(self, run: int) -> None:
        st = self.state
        seed = st.config.run_seed(run)
        st.train_env.reseed(seed)
        if isinstance(st.network, ISeedable):
            st.network.seed(seed)

    def _test_env(self) -> FixedTableEnv:
        env = self.state.test_env
        if env is None:
            raise ConfigurationError("No test environment configured")
        return env

    def _log(self, mode: EvalMode, time: TimeScale) -> None:
        logs = self.state.logs
        if logs is not None:
            logs.log_row(mode, time)


__all__ = [
    "EPOCH_PROGRESS_STATS",
    "RunController",
    "RunOutcome",
    "StopReason",
    "StoppingPolicy",
]
