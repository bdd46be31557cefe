from __future__ import annotations

from .fake_network import DEFAULT_LAYERS, RecordingNetwork, per_epoch
from .scenarios import FAKE_ROLES, build_fake_simulation
from .tables import (
    DEPRESSION_APPLIED_SIZES,
    make_table,
    write_depression_patterns,
    write_emergent_table,
    write_phase_table,
)

__all__ = [
    "DEFAULT_LAYERS",
    "DEPRESSION_APPLIED_SIZES",
    "FAKE_ROLES",
    "RecordingNetwork",
    "build_fake_simulation",
    "make_table",
    "per_epoch",
    "write_depression_patterns",
    "write_emergent_table",
    "write_phase_table",
]
