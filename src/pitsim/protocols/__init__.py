"""Multi-phase training protocols."""

from pitsim.protocols.phases import (
    Phase,
    PhaseOperation,
    PhaseResult,
    ProtocolReport,
    SetActive,
    SetRole,
    lesion,
    phase_names,
    phase_table_from_rows,
    set_roles,
)
from pitsim.protocols.sequencer import PhaseSequencer

__all__ = [
    "Phase",
    "PhaseOperation",
    "PhaseResult",
    "PhaseSequencer",
    "ProtocolReport",
    "SetActive",
    "SetRole",
    "lesion",
    "phase_names",
    "phase_table_from_rows",
    "set_roles",
]
