"""Tests for process wiring and the command line entrypoint."""
from __future__ import annotations

import signal
import sys
import threading
from pathlib import Path
from typing import List

import pytest
from opentelemetry.sdk.metrics.export import MetricExporter, MetricExportResult

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

import otel_sla.app as app_module
from otel_sla.config import AppConfig, ExporterConfig, FileLogConfig, LoggingConfig, SamplingConfig
from otel_sla.orchestration.service import TelemetryService
from otel_sla.sinks.base import ExporterConnectionError
from otel_sla.sinks.file_log import read_records


class RecordingExporter(MetricExporter):
    def __init__(self) -> None:
        super().__init__()
        self.batches: List[object] = []

    def export(self, metrics_data, timeout_millis: float = 10_000, **kwargs) -> MetricExportResult:  # type: ignore[no-untyped-def]
        self.batches.append(metrics_data)
        return MetricExportResult.SUCCESS

    def force_flush(self, timeout_millis: float = 10_000) -> bool:
        return True

    def shutdown(self, timeout_millis: float = 30_000, **kwargs) -> None:  # type: ignore[no-untyped-def]
        return None


def _config(tmp_path: Path, interval: float = 0.02) -> AppConfig:
    return AppConfig(
        exporter=ExporterConfig(export_interval_sec=60, setup_timeout_sec=1),
        sampling=SamplingConfig(tick_interval_sec=interval),
        file_log=FileLogConfig(path=tmp_path / "otel_sla_logs.json"),
        logging=LoggingConfig(log_dir=tmp_path / "logs"),
    )


def test_run_once_writes_both_sinks(tmp_path: Path) -> None:
    exporter = RecordingExporter()
    service = TelemetryService(
        _config(tmp_path), exporter_factory=lambda cfg: exporter, setup_logging=False
    )

    report = service.run_once()
    service.shutdown()

    assert report is not None and report.succeeded
    assert len(read_records(tmp_path / "otel_sla_logs.json")) == 1
    assert exporter.batches


def test_run_forever_returns_after_stop(tmp_path: Path) -> None:
    exporter = RecordingExporter()
    service = TelemetryService(
        _config(tmp_path), exporter_factory=lambda cfg: exporter, setup_logging=False
    )
    timer = threading.Timer(0.15, service.stop)
    timer.start()

    service.run_forever()

    timer.join()
    assert service.cancelled
    assert service.loop.join(timeout=0)
    records = read_records(tmp_path / "otel_sla_logs.json")
    assert 1 <= len(records) <= service.loop.ticks


def test_shutdown_is_idempotent(tmp_path: Path) -> None:
    service = TelemetryService(
        _config(tmp_path), exporter_factory=lambda cfg: RecordingExporter(), setup_logging=False
    )

    service.shutdown()
    service.shutdown()

    assert service.run_once() is None


def test_exporter_failure_prevents_startup(tmp_path: Path) -> None:
    def failing_factory(cfg: ExporterConfig) -> MetricExporter:
        raise RuntimeError("connection refused")

    with pytest.raises(ExporterConnectionError):
        TelemetryService(_config(tmp_path), exporter_factory=failing_factory, setup_logging=False)

    assert not (tmp_path / "otel_sla_logs.json").exists()


def test_main_exits_with_status_one_on_init_failure(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def failing_service(config: AppConfig) -> TelemetryService:
        raise ExporterConnectionError("collector unreachable")

    monkeypatch.setattr(app_module, "TelemetryService", failing_service)

    with pytest.raises(SystemExit) as excinfo:
        app_module.main(["--endpoint", "localhost:1"])

    assert excinfo.value.code == 1


def test_main_once_applies_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    created: List[TelemetryService] = []
    exporter = RecordingExporter()

    def build_service(config: AppConfig) -> TelemetryService:
        config.logging.log_dir = tmp_path / "logs"
        service = TelemetryService(config, exporter_factory=lambda cfg: exporter, setup_logging=False)
        created.append(service)
        return service

    monkeypatch.setattr(app_module, "TelemetryService", build_service)
    monkeypatch.setattr(signal, "signal", lambda signum, handler: None)
    log_file = tmp_path / "custom.json"

    app_module.main(
        ["--once", "--endpoint", "collector:4317", "--log-file", str(log_file), "--interval", "2"]
    )

    (service,) = created
    assert service.loop.ticks == 1
    assert len(read_records(log_file)) == 1
    assert exporter.batches


def test_main_rejects_non_positive_interval() -> None:
    with pytest.raises(SystemExit):
        app_module.main(["--interval", "0"])


def test_run_forever_after_stop_returns_without_ticking(tmp_path: Path) -> None:
    service = TelemetryService(
        _config(tmp_path), exporter_factory=lambda cfg: RecordingExporter(), setup_logging=False
    )
    service.stop()

    service.run_forever()

    assert service.loop.ticks == 0
    assert not (tmp_path / "otel_sla_logs.json").exists()


def test_main_exits_with_status_one_on_missing_config(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        app_module.main(["--config", str(tmp_path / "absent.yaml")])

    assert excinfo.value.code == 1


@pytest.mark.parametrize(
    "content",
    ["exporter:\n  compression: zstd\n", "exporter: [unclosed\n"],
)
def test_main_exits_with_status_one_on_bad_config(tmp_path: Path, content: str) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        app_module.main(["--config", str(path)])

    assert excinfo.value.code == 1
