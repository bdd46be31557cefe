"""Background task runner with a single-active-task guard."""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

from pitsim.core.errors import AlreadyRunningError
from pitsim.io.export import write_run_status
from pitsim.simulation.controller import RunController, RunOutcome

if TYPE_CHECKING:
    from pitsim.protocols.sequencer import PhaseSequencer, ProtocolReport

T = TypeVar("T")


@dataclass(slots=True)
class RunnerSnapshot:
    task: str | None
    state: str
    last_error: str | None
    started_at: str | None
    finished_at: str | None

    def to_payload(self) -> dict[str, Any]:
        return {
            "task": self.task,
            "state": self.state,
            "last_error": self.last_error,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


class SimulationRunner:
    """Launch training or a protocol as one background task.

    Only one task may drive :class:`~pitsim.simulation.state.SimulationState`
    at a time; a second start while one is active raises
    :class:`AlreadyRunningError`. Stopping is cooperative and takes effect
    between trials.
    """

    def __init__(self, controller: RunController, *, run_dir: Path | None = None) -> None:
        self.controller = controller
        self.state = controller.state
        self._run_dir = run_dir
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pitsim")
        self._lock = threading.Lock()
        self._future: Future[Any] | None = None
        self._task: str | None = None
        self._status = "idle"
        self._last_error: str | None = None
        self._started_at: str | None = None
        self._finished_at: str | None = None

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    def start_training(self) -> Future[list[RunOutcome]]:
        return self._start("train", lambda: self.controller.train(reset_stop=False))

    def start_protocol(self, sequencer: PhaseSequencer, *, runs: int = 1) -> Future[ProtocolReport]:
        return self._start("protocol", lambda: sequencer.run(runs=runs, reset_stop=False))

    def stop(self) -> None:
        self.controller.stop()

    def wait(self, timeout: float | None = None) -> Any:
        future = self._future
        if future is None:
            return None
        return future.result(timeout=timeout)

    def snapshot(self) -> RunnerSnapshot:
        with self._lock:
            return RunnerSnapshot(
                task=self._task,
                state=self._status,
                last_error=self._last_error,
                started_at=self._started_at,
                finished_at=self._finished_at,
            )

    def shutdown(self, *, wait: bool = True) -> None:
        if self.is_running:
            self.stop()
        self._executor.shutdown(wait=wait)

    def _start(self, task: str, fn: Callable[[], T]) -> Future[T]:
        if not self.state.try_claim():
            raise AlreadyRunningError(
                "A simulation task is already running", context={"task": self._task}
            )
        try:
            self.state.clear_stop()
            with self._lock:
                self._task = task
                self._status = "running"
                self._last_error = None
                self._started_at = _now_iso()
                self._finished_at = None
            self._write_status()
            future = self._executor.submit(self._run_task, fn)
        except BaseException:
            self.state.release()
            raise
        self._future = future
        return future

    def _run_task(self, fn: Callable[[], T]) -> T:
        status = "finished"
        error: str | None = None
        try:
            result = fn()
            if self.state.stop_requested:
                status = "stopped"
            return result
        except Exception as exc:
            status = "failed"
            error = str(exc)
            raise
        finally:
            with self._lock:
                self._status = status
                self._last_error = error
                self._finished_at = _now_iso()
            self._write_status()
            self.state.release()

    def _write_status(self) -> None:
        if self._run_dir is None:
            return
        write_run_status(self._run_dir, self.snapshot().to_payload())


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


__all__ = ["RunnerSnapshot", "SimulationRunner"]
