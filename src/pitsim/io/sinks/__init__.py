"""Output sinks for I/O."""

from pitsim.io.sinks.csv_sink import LOG_PRECISION, CsvSink

__all__ = ["LOG_PRECISION", "CsvSink"]
