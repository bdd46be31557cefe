"""Utilities for writing per-run manifest/status artifacts."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def _write_json(path: Path, payload: dict[str, Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(payload, indent=2, sort_keys=True, default=str)
    path.write_text(f"{text}\n", encoding="utf-8")
    return path


def write_run_config(run_dir: Path, config: dict[str, Any]) -> Path:
    return _write_json(run_dir / "run_config.json", dict(config))


def write_run_status(run_dir: Path, status: dict[str, Any]) -> Path:
    return _write_json(run_dir / "run_status.json", dict(status))


def write_protocol_report(run_dir: Path, report: dict[str, Any]) -> Path:
    """Phase-by-phase outcome of a protocol run (see ``ProtocolReport.to_dict``)."""

    return _write_json(run_dir / "protocol_report.json", dict(report))


def read_run_status(run_dir: Path) -> dict[str, Any] | None:
    path = run_dir / "run_status.json"
    if not path.exists():
        return None
    payload = json.loads(path.read_text(encoding="utf-8"))
    return payload if isinstance(payload, dict) else None


__all__ = [
    "read_run_status",
    "write_protocol_report",
    "write_run_config",
    "write_run_status",
]
