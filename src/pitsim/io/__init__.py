"""I/O utilities: trial-table loaders, log sinks, run artifacts."""

from __future__ import annotations

from typing import Any

__all__ = [
    "PatternTable",
    "PhaseRow",
    "load_pattern_table",
    "load_phase_table",
]


def __getattr__(name: str) -> Any:
    if name in __all__:
        from pitsim.io import patterns

        return getattr(patterns, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
