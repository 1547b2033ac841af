"""Sinks receiving one memory sample per tick."""
from .base import (
    BaseSink,
    ConfigurationError,
    ExporterConnectionError,
    InstrumentError,
    SetupError,
    SinkResult,
    SinkWriteError,
    TelemetryError,
)
from .file_log import FileLogger, LogRecord, read_records
from .metrics import MetricsEmitter, build_resource, create_exporter

__all__ = [
    "BaseSink",
    "ConfigurationError",
    "ExporterConnectionError",
    "FileLogger",
    "InstrumentError",
    "LogRecord",
    "MetricsEmitter",
    "SetupError",
    "SinkResult",
    "SinkWriteError",
    "TelemetryError",
    "build_resource",
    "create_exporter",
    "read_records",
]
