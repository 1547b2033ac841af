"""OpenTelemetry metrics sink: memory gauge and counter exported over OTLP."""
from __future__ import annotations

import logging
import platform
import socket
import threading
from typing import Callable, Iterable, List, Optional

import grpc
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.metrics import CallbackOptions, Meter, Observation
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricExporter, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import HOST_NAME, OS_TYPE, SERVICE_NAME, Resource

from ..config import ExporterConfig, InstrumentConfig, ResourceConfig
from ..sampling.sampler import MemorySample, ResourceSampler
from .base import (
    BaseSink,
    ConfigurationError,
    ExporterConnectionError,
    InstrumentError,
    SinkWriteError,
)

LOGGER = logging.getLogger(__name__)

ExporterFactory = Callable[[ExporterConfig], MetricExporter]

_COMPRESSION = {
    "gzip": grpc.Compression.Gzip,
    "deflate": grpc.Compression.Deflate,
    "none": grpc.Compression.NoCompression,
}


def build_resource(config: ResourceConfig) -> Resource:
    """Default SDK resource merged with service, host and OS attributes."""
    try:
        hostname = socket.gethostname()
    except OSError:
        hostname = ""

    try:
        return Resource.create(
            {
                SERVICE_NAME: config.service_name,
                HOST_NAME: hostname,
                OS_TYPE: platform.system().lower(),
            }
        )
    except Exception as exc:
        raise ConfigurationError(f"could not build resource: {exc}") from exc


def create_otlp_exporter(config: ExporterConfig) -> MetricExporter:
    return OTLPMetricExporter(
        endpoint=config.endpoint,
        insecure=config.insecure,
        compression=_COMPRESSION[config.compression],
    )


class _ExporterSetup:
    """Runs the exporter factory on a daemon thread so a stalled constructor
    cannot keep the interpreter alive; a late exporter is shut down."""

    def __init__(self, factory: ExporterFactory, config: ExporterConfig) -> None:
        self._factory = factory
        self._config = config
        self._lock = threading.Lock()
        self._abandoned = False
        self._done = False
        self.exporter: Optional[MetricExporter] = None
        self.error: Optional[BaseException] = None
        self._thread = threading.Thread(
            target=self._run, name="otel-sla-exporter-setup", daemon=True
        )

    def wait(self, timeout: float) -> bool:
        """Start the factory and wait up to ``timeout``; False when it did not finish."""
        self._thread.start()
        self._thread.join(timeout)
        with self._lock:
            if not self._done:
                self._abandoned = True
            return self._done

    def _run(self) -> None:
        try:
            exporter = self._factory(self._config)
        except Exception as exc:
            with self._lock:
                self.error = exc
                self._done = True
            return
        with self._lock:
            if not self._abandoned:
                self.exporter = exporter
                self._done = True
                return
        LOGGER.warning("Exporter for %s arrived after the setup timeout; discarding", self._config.endpoint)
        try:
            exporter.shutdown()
        except Exception as exc:
            LOGGER.error("Failed to shut down late exporter: %s", exc)


def create_exporter(
    config: ExporterConfig,
    factory: Optional[ExporterFactory] = None,
) -> MetricExporter:
    """Construct the exporter, giving up after ``config.setup_timeout_sec``."""
    setup = _ExporterSetup(factory or create_otlp_exporter, config)
    if not setup.wait(config.setup_timeout_sec):
        raise ExporterConnectionError(
            f"exporter for {config.endpoint} not ready after {config.setup_timeout_sec}s"
        )
    if setup.error is not None:
        raise ExporterConnectionError(
            f"could not create metric exporter for {config.endpoint}: {setup.error}"
        ) from setup.error

    LOGGER.info("Metric exporter ready for %s", config.endpoint)
    return setup.exporter


class MetricsEmitter(BaseSink):
    """Pushes a counter increment per tick and serves gauge observations on demand.

    The gauge is observed by the export cycle through :meth:`observe_gauge`,
    which takes its own sample; it is not tied to the sampling tick.
    """

    def __init__(
        self,
        meter: Meter,
        sampler: ResourceSampler,
        instruments: Optional[InstrumentConfig] = None,
        *,
        provider: Optional[MeterProvider] = None,
        strict: bool = True,
    ) -> None:
        super().__init__("metrics")
        self._meter = meter
        self._sampler = sampler
        self._instruments = instruments or InstrumentConfig()
        self._provider = provider
        self._strict = strict
        self._gauge = None
        self._counter = None
        self._is_shutdown = False
        self._register_instruments()

    @classmethod
    def initialize(
        cls,
        config: ExporterConfig,
        sampler: ResourceSampler,
        *,
        resource_config: Optional[ResourceConfig] = None,
        instruments: Optional[InstrumentConfig] = None,
        exporter_factory: Optional[ExporterFactory] = None,
    ) -> "MetricsEmitter":
        """Build resource, exporter, reader and provider, then register instruments.

        Raises:
            ConfigurationError: resource metadata could not be built.
            ExporterConnectionError: the exporter failed or timed out.
            InstrumentError: an instrument could not be registered in strict mode.
        """
        resource_config = resource_config or ResourceConfig()
        resource = build_resource(resource_config)
        exporter = create_exporter(config, exporter_factory)

        reader = PeriodicExportingMetricReader(
            exporter, export_interval_millis=config.export_interval_sec * 1000
        )
        provider = MeterProvider(resource=resource, metric_readers=[reader])
        meter = provider.get_meter(resource_config.meter_name)

        try:
            emitter = cls(
                meter,
                sampler,
                instruments,
                provider=provider,
                strict=config.strict_instruments,
            )
        except InstrumentError:
            provider.shutdown()
            raise

        LOGGER.info(
            "Metrics emitter initialized (endpoint=%s, export interval=%ss)",
            config.endpoint,
            config.export_interval_sec,
        )
        return emitter

    @property
    def provider(self) -> Optional[MeterProvider]:
        return self._provider

    @property
    def registered_instruments(self) -> List[str]:
        """Names of the instruments that registered successfully."""
        names: List[str] = []
        if self._gauge is not None:
            names.append(self._instruments.gauge_name)
        if self._counter is not None:
            names.append(self._instruments.counter_name)
        return names

    def _register_instruments(self) -> None:
        names = self._instruments
        try:
            self._gauge = self._meter.create_observable_gauge(
                names.gauge_name,
                callbacks=[self.observe_gauge],
                unit=names.unit,
                description=names.gauge_description,
            )
        except Exception as exc:
            self._handle_registration_failure(names.gauge_name, exc)

        try:
            self._counter = self._meter.create_counter(
                names.counter_name,
                unit=names.unit,
                description=names.counter_description,
            )
        except Exception as exc:
            self._handle_registration_failure(names.counter_name, exc)

    def _handle_registration_failure(self, name: str, exc: Exception) -> None:
        if self._strict:
            raise InstrumentError(f"failed to register instrument {name}: {exc}") from exc
        LOGGER.error("Failed to register instrument %s: %s", name, exc)

    def observe_gauge(self, options: CallbackOptions) -> Iterable[Observation]:
        """Gauge callback invoked by the reader on every collection."""
        sample = self._sampler.sample()
        return [
            Observation(
                sample.megabytes,
                {"metric_generation_time": sample.timestamp},
            )
        ]

    def record_tick(self, sample: MemorySample) -> bool:
        """Add the sample to the counter; failures are logged and reported as ``False``."""
        try:
            self._record(sample)
        except SinkWriteError as exc:
            LOGGER.error("Skipping counter update: %s", exc)
            return False
        return True

    def _emit(self, sample: MemorySample) -> None:
        self._record(sample)

    def _record(self, sample: MemorySample) -> None:
        if self._counter is None:
            raise SinkWriteError(f"counter {self._instruments.counter_name} is not registered")
        delta = sample.whole_megabytes
        try:
            self._counter.add(delta, attributes={"metric_collection_time": sample.timestamp})
        except Exception as exc:
            raise SinkWriteError(f"counter add failed: {exc}") from exc
        LOGGER.debug("Counter %s += %d", self._instruments.counter_name, delta)

    def shutdown(self) -> None:
        """Flush a final export and stop the provider's reader thread."""
        if self._is_shutdown or self._provider is None:
            return
        self._is_shutdown = True
        LOGGER.info("Shutting down meter provider")
        self._provider.shutdown()

    def close(self) -> None:
        self.shutdown()

