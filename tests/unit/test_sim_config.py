from __future__ import annotations

from pathlib import Path

import pytest

from pitsim.simulation.configs import DEFAULT_APPLIED_LAYERS, SimConfig, coerce_sim_config

pytestmark = pytest.mark.unit


def test_defaults() -> None:
    cfg = SimConfig()
    assert cfg.max_runs == 1
    assert cfg.max_epochs == 100
    assert cfg.n_zero_stop == -1
    assert cfg.cycles_per_quarter == 25
    assert cfg.applied_layers == DEFAULT_APPLIED_LAYERS
    assert cfg.stat_layer == "Behavior"
    assert cfg.end_run == 1


def test_coercion_from_strings() -> None:
    cfg = SimConfig(
        max_runs="3",  # type: ignore[arg-type]
        start_run=-2,
        applied_layers="A, B,,C",  # type: ignore[arg-type]
        out_dir="out",  # type: ignore[arg-type]
        params_name="  ",
    )
    assert cfg.max_runs == 3
    assert cfg.start_run == 0
    assert cfg.applied_layers == ("A", "B", "C")
    assert cfg.out_dir == Path("out")
    assert cfg.params_name == "Base"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_runs": 0},
        {"max_epochs": 0},
        {"cycles_per_quarter": 0},
        {"tolerance": -0.1},
        {"stat_layer": " "},
    ],
)
def test_invalid_values(kwargs) -> None:
    with pytest.raises(ValueError):
        SimConfig(**kwargs)


def test_run_and_file_names() -> None:
    assert SimConfig().run_name() == "Base"
    cfg = SimConfig(tag="exp", params_name="Lesion", start_run=2, max_runs=3)
    assert cfg.run_name() == "exp_Lesion_002"
    assert cfg.end_run == 5
    assert cfg.weights_file_name("Depress", run=4, epoch=37) == "Depress_exp_Lesion_002_004_00037.wts"
    assert cfg.log_file_name("Depress", "epc") == "Depress_exp_Lesion_002_epc.csv"
    assert cfg.run_seed(4) == cfg.seed + 4


def test_mapping_round_trip_keeps_unknown_keys() -> None:
    cfg = SimConfig.from_mapping({"max_epochs": 7, "checkpoint_dir": "w", "lrate": 0.1})
    assert cfg.max_epochs == 7
    assert cfg.extra == {"lrate": 0.1}
    payload = cfg.to_dict()
    assert payload["checkpoint_dir"] == "w"
    assert payload["applied_layers"] == list(DEFAULT_APPLIED_LAYERS)
    again = SimConfig.from_mapping(payload)
    assert again == cfg


def test_coerce_sim_config() -> None:
    cfg = SimConfig(max_epochs=3)
    assert coerce_sim_config(cfg) is cfg
    assert coerce_sim_config(None) == SimConfig()
    assert coerce_sim_config({"max_epochs": 4}).max_epochs == 4
    with pytest.raises(TypeError):
        coerce_sim_config(42)  # type: ignore[arg-type]
