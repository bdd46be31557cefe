"""Configuration for controller and protocol runs."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

DEFAULT_APPLIED_LAYERS: tuple[str, ...] = (
    "EnviroFeatures",
    "InteroState",
    "MBApp",
    "MBAv",
    "Approach",
    "Avoidance",
    "Behavior",
    "Cost",
    "DyDA",
)
DEFAULT_PCA_LAYERS: tuple[str, ...] = ("Hidden1", "Hidden2")


@dataclass(slots=True)
class SimConfig:
    max_runs: int = 1
    start_run: int = 0
    max_epochs: int = 100
    n_zero_stop: int = -1
    cycles_per_quarter: int = 25
    test_interval: int = -1
    pca_interval: int = 5
    pca_layers: tuple[str, ...] = DEFAULT_PCA_LAYERS
    applied_layers: tuple[str, ...] = DEFAULT_APPLIED_LAYERS
    stat_layer: str = "Behavior"
    tolerance: float = 0.5
    sequential: bool = False
    seed: int = 1
    tag: str = ""
    note: str = ""
    params_name: str = "Base"
    out_dir: Path | None = None
    checkpoint_dir: Path | None = None
    save_weights: bool = False
    epoch_log_file: bool = False
    run_log_file: bool = False
    verbose: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.max_runs = int(self.max_runs)
        if self.max_runs <= 0:
            raise ValueError("max_runs must be > 0")
        self.start_run = max(0, int(self.start_run))
        self.max_epochs = int(self.max_epochs)
        if self.max_epochs <= 0:
            raise ValueError("max_epochs must be > 0")
        self.n_zero_stop = int(self.n_zero_stop)
        self.cycles_per_quarter = int(self.cycles_per_quarter)
        if self.cycles_per_quarter <= 0:
            raise ValueError("cycles_per_quarter must be > 0")
        self.test_interval = int(self.test_interval)
        self.pca_interval = int(self.pca_interval)
        self.pca_layers = _coerce_names(self.pca_layers)
        self.applied_layers = _coerce_names(self.applied_layers)
        self.stat_layer = str(self.stat_layer).strip()
        if not self.stat_layer:
            raise ValueError("stat_layer must be a non-empty layer name")
        self.tolerance = float(self.tolerance)
        if self.tolerance < 0.0:
            raise ValueError("tolerance must be >= 0")
        self.sequential = bool(self.sequential)
        self.seed = int(self.seed)
        self.tag = str(self.tag).strip()
        self.note = str(self.note)
        self.params_name = str(self.params_name).strip() or "Base"
        self.out_dir = Path(self.out_dir) if self.out_dir is not None else None
        self.checkpoint_dir = Path(self.checkpoint_dir) if self.checkpoint_dir is not None else None
        self.extra = dict(self.extra)

    @property
    def end_run(self) -> int:
        return self.start_run + self.max_runs

    def run_seed(self, run: int) -> int:
        """Seed for run ``run``: runs use ``seed + run`` so run 0 gets ``seed``."""

        return self.seed + int(run)

    def run_name(self) -> str:
        name = f"{self.tag}_{self.params_name}" if self.tag else self.params_name
        if self.start_run > 0:
            name += f"_{self.start_run:03d}"
        return name

    def weights_file_name(self, net_name: str, *, run: int, epoch: int) -> str:
        return f"{net_name}_{self.run_name()}_{int(run):03d}_{int(epoch):05d}.wts"

    def log_file_name(self, net_name: str, suffix: str) -> str:
        return f"{net_name}_{self.run_name()}_{suffix}.csv"

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if isinstance(value, Path):
                value = str(value)
            elif isinstance(value, tuple):
                value = list(value)
            payload[item.name] = value
        return payload

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> SimConfig:
        known = {item.name for item in fields(cls)}
        kwargs: dict[str, Any] = {}
        extra: dict[str, Any] = dict(raw.get("extra", {}) or {})
        for key, value in raw.items():
            if key == "extra":
                continue
            if key in known:
                kwargs[key] = value
            else:
                extra[key] = value
        kwargs["extra"] = extra
        return cls(**kwargs)


def coerce_sim_config(value: SimConfig | Mapping[str, Any] | None) -> SimConfig:
    if value is None:
        return SimConfig()
    if isinstance(value, SimConfig):
        return value
    if isinstance(value, Mapping):
        return SimConfig.from_mapping(value)
    raise TypeError(f"Cannot build SimConfig from {type(value).__name__}")


def _coerce_names(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        tokens = [token.strip() for token in value.split(",")]
        return tuple(token for token in tokens if token)
    if isinstance(value, Sequence):
        return tuple(str(item).strip() for item in value if str(item).strip())
    raise ValueError(f"Expected a layer name list, got {type(value).__name__}")


__all__ = [
    "DEFAULT_APPLIED_LAYERS",
    "DEFAULT_PCA_LAYERS",
    "SimConfig",
    "coerce_sim_config",
]
