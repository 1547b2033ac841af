"""Configuration utilities for the telemetry emitter."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field

ENDPOINT_ENV_VAR = "OTEL_SLA_EXPORTER_ENDPOINT"


class ExporterConfig(BaseModel):
    """Settings for the OTLP metrics exporter and its periodic reader."""

    endpoint: str = Field(
        "localhost:4317",
        description="host:port of the metrics collector receiving OTLP over gRPC.",
    )
    compression: Literal["gzip", "deflate", "none"] = Field(
        "gzip", description="Compression applied to the gRPC channel."
    )
    insecure: bool = Field(
        True, description="Use a plaintext channel instead of TLS."
    )
    export_interval_sec: float = Field(
        10.0,
        gt=0.0,
        description="Cadence at which the periodic reader collects and exports metrics.",
    )
    setup_timeout_sec: float = Field(
        5.0,
        gt=0.0,
        description="Upper bound on exporter construction before startup is aborted.",
    )
    strict_instruments: bool = Field(
        True,
        description=(
            "Treat gauge/counter registration failures as fatal. When disabled the "
            "failure is logged and the affected instrument stays inactive."
        ),
    )


class SamplingConfig(BaseModel):
    """Sampling loop cadence."""

    tick_interval_sec: float = Field(
        5.0, gt=0.0, description="Delay between two consecutive sampling ticks."
    )


class FileLogConfig(BaseModel):
    """Settings for the append-only JSON log sink."""

    path: Path = Field(
        Path("otel_sla_logs.json"),
        description="File receiving one JSON object per tick.",
    )
    message: str = Field(
        "otel-sla-logs", description="Constant message written into every record."
    )


class ResourceConfig(BaseModel):
    """Resource metadata and meter identity."""

    service_name: str = Field("otel-sla", description="Value of the service.name attribute.")
    meter_name: str = Field("otel_sla", description="Instrumentation scope of the meter.")


class InstrumentConfig(BaseModel):
    """Names and descriptions of the exported instruments."""

    gauge_name: str = Field("otel.sla.metric")
    gauge_description: str = Field("Allocated memory in MB")
    counter_name: str = Field("allocated_memory_in_mb")
    counter_description: str = Field("Total allocated memory in MB")
    unit: str = Field("MB")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field("INFO", description="Root logging level.")
    log_dir: Path = Field(Path("logs"), description="Directory for diagnostic log files.")


class AppConfig(BaseModel):
    """Top-level configuration object."""

    exporter: ExporterConfig = ExporterConfig()
    sampling: SamplingConfig = SamplingConfig()
    file_log: FileLogConfig = FileLogConfig()
    resource: ResourceConfig = ResourceConfig()
    instruments: InstrumentConfig = InstrumentConfig()
    logging: LoggingConfig = LoggingConfig()


def load_config(path: Optional[os.PathLike[str]] = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Optional path to a configuration file. If not provided, the default
            configuration bundled with the project is used when present, and the
            built-in defaults otherwise.

    Returns:
        AppConfig: Parsed configuration model.
    """

    project_root = Path(__file__).resolve().parents[2]
    default_path = project_root / "config" / "default.yaml"

    data: Dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        data = _read_yaml(config_path)
    elif default_path.exists():
        data = _read_yaml(default_path)

    overrides_path = project_root / "config" / "overrides.yaml"
    if overrides_path.exists():
        data = _deep_update(data, _read_yaml(overrides_path))

    endpoint = os.environ.get(ENDPOINT_ENV_VAR)
    if endpoint:
        data = _deep_update(data, {"exporter": {"endpoint": endpoint}})

    return AppConfig(**data)


def _read_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def _deep_update(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge update mapping into base mapping."""

    merged = dict(base)
    for key, value in updates.items():
        if (
            key in merged
            and isinstance(merged[key], dict)
            and isinstance(value, dict)
        ):
            merged[key] = _deep_update(merged[key], value)
        else:
            merged[key] = value
    return merged
