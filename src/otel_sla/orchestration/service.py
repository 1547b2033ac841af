"""Process-level wiring of the sampler, sinks and sampling loop."""
from __future__ import annotations

import logging
import threading
from typing import List, Optional

from ..config import AppConfig
from ..logging_config import configure_logging
from ..sampling.sampler import ResourceSampler
from ..sinks.base import BaseSink
from ..sinks.file_log import FileLogger
from ..sinks.metrics import ExporterFactory, MetricsEmitter
from .sampling_loop import SamplingLoop, TickReport

LOGGER = logging.getLogger(__name__)


class TelemetryService:
    """Owns the cancellation scope and every long-lived component.

    Construction raises a ``TelemetryError`` when the metrics pipeline cannot
    be initialized; the loop is never started in that case.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        sampler: Optional[ResourceSampler] = None,
        exporter_factory: Optional[ExporterFactory] = None,
        setup_logging: bool = True,
    ) -> None:
        if setup_logging:
            configure_logging(config.logging)
        self._config = config
        self._cancel = threading.Event()
        self._is_shutdown = False

        self.sampler = sampler or ResourceSampler()
        self.emitter = MetricsEmitter.initialize(
            config.exporter,
            self.sampler,
            resource_config=config.resource,
            instruments=config.instruments,
            exporter_factory=exporter_factory,
        )
        self.file_logger = FileLogger(config.file_log.path, config.file_log.message)
        self.sinks: List[BaseSink] = [self.emitter, self.file_logger]
        self.loop = SamplingLoop(
            self.sampler,
            self.sinks,
            config.sampling,
            cancel_event=self._cancel,
        )

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def run_once(self) -> Optional[TickReport]:
        return self.loop.run_once()

    def run_forever(self) -> None:
        """Start the loop and block until :meth:`stop` is called."""
        LOGGER.info(
            "Reporting memory to %s and %s",
            self._config.exporter.endpoint,
            self._config.file_log.path,
        )
        try:
            if self._cancel.is_set():
                LOGGER.info("Telemetry service stopped before the loop started")
                return
            self.loop.start()
            while not self._cancel.wait(timeout=1.0):
                pass
        except KeyboardInterrupt:
            LOGGER.info("Telemetry service stopped by user")
        finally:
            self.shutdown()

    def stop(self) -> None:
        self._cancel.set()

    def shutdown(self) -> None:
        """Cancel the loop, wait for it, and close every sink."""

        if self._is_shutdown:
            return

        self._is_shutdown = True
        LOGGER.info("Shutting down telemetry service")
        self.loop.cancel()
        if not self.loop.join(timeout=self._config.sampling.tick_interval_sec + 1.0):
            LOGGER.warning("Sampling loop did not exit before the shutdown deadline")
        for sink in self.sinks:
            sink.close()
        LOGGER.info("Telemetry service stopped after %d ticks", self.loop.ticks)
