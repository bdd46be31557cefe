"""Pytest configuration."""

from __future__ import annotations

import os
import tempfile
import uuid
from pathlib import Path

import pytest

from tests.support import write_depression_patterns


def _pytest_base_dir() -> Path:
    root = os.environ.get("PYTEST_BASEDIR")
    repo_root = Path(__file__).resolve().parents[1]
    base = Path(root) if root else repo_root / ".pytest_tmp"
    return _ensure_writable_base(base, fallback=repo_root / ".pytest_tmp")


def _ensure_writable_base(base: Path, *, fallback: Path) -> Path:
    try:
        base.mkdir(parents=True, exist_ok=True)
        probe = base / "__write_probe__"
        probe.mkdir(parents=True, exist_ok=True)
        probe.rmdir()
        return base
    except OSError:
        fallback.mkdir(parents=True, exist_ok=True)
        return fallback


def pytest_configure(config) -> None:
    """Point basetemp at a writable directory; run folders and checkpoints land there."""
    if config.option.basetemp is None:
        base = _pytest_base_dir() / "tmp" / uuid.uuid4().hex
        try:
            base.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            base = Path(tempfile.gettempdir()) / "pitsim_pytest" / "tmp"
            base.mkdir(parents=True, exist_ok=True)
        config.option.basetemp = str(base)


@pytest.fixture
def tmp_path() -> Path:
    base = _ensure_writable_base(_pytest_base_dir() / "tmp_path", fallback=_pytest_base_dir())
    run_dir = base / uuid.uuid4().hex
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


@pytest.fixture
def depression_patterns(tmp_path: Path) -> Path:
    """Directory with the instrumental, Pavlovian and phase tables the CLI reads."""
    return write_depression_patterns(tmp_path / "patterns")
