"""CLI entrypoint for batch training and PIT protocol runs."""

from __future__ import annotations

import argparse
import time
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pitsim.api.builders import build_simulation
from pitsim.api.presets import (
    BASELINE_ROLES,
    INSTRUMENTAL_TABLE,
    PAVLOV_TABLE,
    PIT_PHASE_TEMPLATES,
    TEST_TABLE,
    make_depression_network,
)
from pitsim.contracts.data import ITrialSource
from pitsim.contracts.logs import EvalMode, TimeScale
from pitsim.engine.specs import RateNetworkConfig
from pitsim.io.export.run_manifest import write_protocol_report, write_run_config, write_run_status
from pitsim.io.patterns import load_pattern_table, load_phase_table
from pitsim.monitors.logs import SimLogs
from pitsim.protocols.phases import phase_table_from_rows
from pitsim.protocols.sequencer import PhaseSequencer
from pitsim.simulation.configs import SimConfig
from pitsim.simulation.controller import RunOutcome

INSTRUMENTAL_FILE = "DepressInstr2.tsv"
PAVLOV_FILE = "DepressPvlv.tsv"
TEST_FILE = "DepressTest.tsv"
PHASES_FILE = "InstrThenPvlv.tsv"


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    patterns_dir = Path(args.patterns).expanduser().resolve()
    out_root = Path(args.out_dir).expanduser().resolve()
    run_dir = _make_run_dir(out_root, args.run_id)
    weights_dir = run_dir / "weights"

    config = SimConfig(
        max_runs=args.runs,
        start_run=args.run,
        max_epochs=args.epochs,
        n_zero_stop=args.n_zero_stop,
        cycles_per_quarter=args.cycles_per_quarter,
        test_interval=args.test_interval,
        pca_interval=args.pca_interval,
        seed=args.seed,
        tag=args.tag,
        note=args.note,
        params_name=args.params,
        out_dir=run_dir,
        checkpoint_dir=weights_dir,
        save_weights=bool(args.wts),
        epoch_log_file=bool(args.epclog),
        run_log_file=bool(args.runlog),
        verbose=bool(args.verbose),
    )

    tables = _load_tables(patterns_dir, mode=args.mode)
    network = make_depression_network(
        config=RateNetworkConfig(checkpoint_dir=weights_dir, device=args.device),
        seed=config.seed,
    )
    state, controller = build_simulation(
        network,
        tables[INSTRUMENTAL_TABLE],
        test_table=tables.get(TEST_TABLE),
        config=config,
        roles=BASELINE_ROLES,
        tables={name: table for name, table in tables.items() if name != TEST_TABLE},
        logs=False,
    )
    logs = SimLogs(state.stats, params_name=config.params_name)
    state.logs = logs
    if config.epoch_log_file:
        logs.set_log_file(EvalMode.TRAIN, TimeScale.EPOCH, run_dir / config.log_file_name(network.name, "epc"))
    if config.run_log_file:
        logs.set_log_file(EvalMode.TRAIN, TimeScale.RUN, run_dir / config.log_file_name(network.name, "run"))

    print(f"Run dir: {run_dir}")
    print(f"Mode: {args.mode}")
    if config.note:
        print(f"Note: {config.note}")

    write_run_config(
        run_dir,
        {
            "run_id": run_dir.name,
            "mode": args.mode,
            "patterns": str(patterns_dir),
            "network": network.name,
            "config": config.to_dict(),
        },
    )
    started_at = _now_iso()
    write_run_status(run_dir, {"run_id": run_dir.name, "state": "running", "started_at": started_at})

    try:
        controller.init()
        summary: dict[str, Any]
        if args.mode == "train":
            outcomes = controller.train()
            summary = {"runs": [_outcome_dict(outcome) for outcome in outcomes]}
            for outcome in outcomes:
                print(
                    f"[pitsim] run={outcome.run} epochs={outcome.epochs} "
                    f"reason={outcome.reason.value} first_zero={outcome.first_zero}"
                )
        else:
            phases_path = Path(args.phases).expanduser() if args.phases else patterns_dir / PHASES_FILE
            phases = phase_table_from_rows(load_phase_table(phases_path), PIT_PHASE_TEMPLATES)
            sequencer = PhaseSequencer(state, controller, phases)
            report = sequencer.run(runs=config.max_runs)
            write_protocol_report(run_dir, report.to_dict())
            summary = {"completed_phases": list(report.completed_phases), "cancelled": report.cancelled}
            print(f"[pit] completed phases: {', '.join(report.completed_phases) or '<none>'}")
    except Exception as exc:
        write_run_status(
            run_dir,
            {
                "run_id": run_dir.name,
                "state": "failed",
                "started_at": started_at,
                "finished_at": _now_iso(),
                "last_error": f"{type(exc).__name__}: {exc}",
            },
        )
        raise
    finally:
        logs.close_log_files()

    write_run_status(
        run_dir,
        {
            "run_id": run_dir.name,
            "state": "finished",
            "started_at": started_at,
            "finished_at": _now_iso(),
            **summary,
        },
    )


def _load_tables(patterns_dir: Path, *, mode: str) -> dict[str, ITrialSource]:
    tables: dict[str, ITrialSource] = {
        INSTRUMENTAL_TABLE: load_pattern_table(patterns_dir / INSTRUMENTAL_FILE, name=INSTRUMENTAL_TABLE),
    }
    pavlov_path = patterns_dir / PAVLOV_FILE
    if mode == "pit" or pavlov_path.exists():
        tables[PAVLOV_TABLE] = load_pattern_table(pavlov_path, name=PAVLOV_TABLE)
    test_path = patterns_dir / TEST_FILE
    if test_path.exists():
        tables[TEST_TABLE] = load_pattern_table(test_path, name=TEST_TABLE)
    return tables


def _outcome_dict(outcome: RunOutcome) -> dict[str, Any]:
    return {
        "run": outcome.run,
        "epochs": outcome.epochs,
        "reason": outcome.reason.value,
        "n_zero": outcome.n_zero,
        "first_zero": outcome.first_zero,
    }


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run depression/PIT training from pattern tables")
    parser.add_argument(
        "--mode",
        choices=["train", "pit"],
        default="train",
        help="train: plain runs on the instrumental table; pit: phase protocol from --phases",
    )
    parser.add_argument("--patterns", type=str, default=".", help="directory holding the .tsv pattern tables")
    parser.add_argument(
        "--phases",
        type=str,
        default=None,
        help=f"protocol table with Training/MaxEpoch columns (default: <patterns>/{PHASES_FILE})",
    )
    parser.add_argument("--params", type=str, default="Base", help="params set name used in file names")
    parser.add_argument("--tag", type=str, default="", help="extra tag added to file names saved from this run")
    parser.add_argument("--note", type=str, default="", help="user note describing the run")
    parser.add_argument("--run", type=int, default=0, help="starting run number; determines the random seed")
    parser.add_argument("--runs", type=int, default=1, help="number of runs to do")
    parser.add_argument("--epochs", type=int, default=100, help="max epochs per run")
    parser.add_argument("--n-zero-stop", type=int, default=-1, help="stop after this many zero-error epochs")
    parser.add_argument("--cycles-per-quarter", type=int, default=25)
    parser.add_argument("--test-interval", type=int, default=-1, help="test every N epochs (<=0 disables)")
    parser.add_argument("--pca-interval", type=int, default=5, help="hidden-layer PCA every N epochs")
    parser.add_argument("--seed", type=int, default=1)
    parser.add_argument("--device", choices=["cpu", "cuda"], default=None)
    parser.add_argument("--wts", action=argparse.BooleanOptionalAction, default=False, help="save weights after each run")
    parser.add_argument("--epclog", action=argparse.BooleanOptionalAction, default=True, help="save the train epoch log")
    parser.add_argument("--runlog", action=argparse.BooleanOptionalAction, default=True, help="save the run log")
    parser.add_argument("--out-dir", type=str, default="artifacts", help="root directory for run folders")
    parser.add_argument("--run-id", type=str, default=None, help="reuse or name a specific run folder")
    parser.add_argument("--verbose", action=argparse.BooleanOptionalAction, default=False)
    return parser.parse_args(argv)


def _make_run_dir(base: Path, run_id: str | None = None) -> Path:
    base.mkdir(parents=True, exist_ok=True)
    if run_id:
        safe_id = "".join(ch if ch.isalnum() or ch in "_-." else "_" for ch in run_id).strip("._")
        if not safe_id:
            raise ValueError("run_id must contain at least one valid character")
        run_dir = base / safe_id
        if run_dir.exists():
            if not run_dir.is_dir():
                raise FileExistsError(f"Run path exists and is not a directory: {run_dir}")
            return run_dir
    else:
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        run_dir = base / f"run_{stamp}"
        if run_dir.exists():
            run_dir = base / f"run_{stamp}_{int(time.time())}"
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def _now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="seconds").replace("+00:00", "Z")


if __name__ == "__main__":
    main()
