"""Sink interfaces and the telemetry error taxonomy."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..sampling.sampler import MemorySample

LOGGER = logging.getLogger(__name__)


class TelemetryError(Exception):
    """Startup failure that prevents the sampling loop from running."""


class ConfigurationError(TelemetryError):
    """Resource metadata could not be constructed."""


class ExporterConnectionError(TelemetryError):
    """The metrics exporter could not be constructed within the setup timeout."""


class InstrumentError(TelemetryError):
    """A gauge or counter could not be registered on the meter."""


SetupError = InstrumentError


class SinkWriteError(Exception):
    """Raised by a sink when a single tick could not be delivered."""


@dataclass
class SinkResult:
    """Outcome of delivering one sample to one sink."""

    sink: str
    success: bool
    error: Optional[str] = None


class BaseSink:
    """Base class for tick consumers.

    ``emit`` never raises; a failing sink yields an unsuccessful result so the
    remaining sinks of the tick are still attempted.
    """

    def __init__(self, name: str) -> None:
        self.name = name

    def emit(self, sample: MemorySample) -> SinkResult:
        try:
            self._emit(sample)
        except Exception as exc:
            LOGGER.error("Sink %s failed for sample at %s: %s", self.name, sample.timestamp, exc)
            return SinkResult(sink=self.name, success=False, error=str(exc))
        return SinkResult(sink=self.name, success=True)

    def _emit(self, sample: MemorySample) -> None:
        """Deliver a sample; implemented by subclasses."""
        raise NotImplementedError

    def close(self) -> None:
        """Release any resources held by the sink."""
