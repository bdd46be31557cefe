"""Torch utilities shared across the codebase."""

from __future__ import annotations

import importlib
from typing import Any


def require_torch() -> Any:
    try:
        return importlib.import_module("torch")
    except Exception as exc:  # pragma: no cover - optional dependency
        raise RuntimeError("Torch is required to use pitsim torch components.") from exc


def resolve_device_dtype(device: str | None, dtype: str | None) -> tuple[Any, Any]:
    t = require_torch()
    device_obj = t.device(device) if device else None
    dtype_obj = _resolve_dtype(t, dtype)
    return device_obj, dtype_obj


def _resolve_dtype(t: Any, dtype_str: str | None) -> Any:
    if dtype_str is None:
        return t.get_default_dtype()
    name = dtype_str
    if name.startswith("torch."):
        name = name.split(".", 1)[1]
    if not hasattr(t, name):
        raise ValueError(f"Unknown torch dtype: {dtype_str}")
    return getattr(t, name)


__all__ = ["require_torch", "resolve_device_dtype", "_resolve_dtype"]
