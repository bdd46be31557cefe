"""Run-manifest export helpers."""

from pitsim.io.export.run_manifest import (
    read_run_status,
    write_protocol_report,
    write_run_config,
    write_run_status,
)

__all__ = [
    "read_run_status",
    "write_protocol_report",
    "write_run_config",
    "write_run_status",
]
