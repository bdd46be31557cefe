"""Error taxonomy shared by the controller, protocol sequencer and engines."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class SimulationError(RuntimeError):
    """Base class for simulation failures.

    ``context`` collects where the failure happened (run/epoch/trial indices,
    phase name, checkpoint name). Callers add to it while the exception
    propagates so the original exception type is preserved.
    """

    def __init__(self, message: str, *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})

    def attach_context(self, **context: Any) -> SimulationError:
        for key, value in context.items():
            self.context.setdefault(key, value)
        return self

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value!r}" for key, value in self.context.items())
        return f"{self.message} ({details})"


class InvalidPatternShape(SimulationError):
    """Applied pattern cardinality does not match the layer size."""

    def __init__(self, layer: str, *, expected: int, actual: int) -> None:
        super().__init__(
            f"Pattern for layer '{layer}' has {actual} values, expected {expected}",
            context={"layer": layer},
        )
        self.layer = layer
        self.expected = expected
        self.actual = actual


class CheckpointNotFound(SimulationError):
    """A named weight checkpoint does not exist."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Checkpoint '{name}' not found", context={"checkpoint": name})
        self.name = name


class ConfigurationError(SimulationError):
    """Unresolvable names or inconsistent configuration, detected before training."""


class AlreadyRunningError(SimulationError):
    """A background task is already driving the simulation."""


__all__ = [
    "AlreadyRunningError",
    "CheckpointNotFound",
    "ConfigurationError",
    "InvalidPatternShape",
    "SimulationError",
]
