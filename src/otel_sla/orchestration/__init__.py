"""Sampling loop and process wiring."""
from .sampling_loop import LoopState, SamplingLoop, TickReport
from .service import TelemetryService

__all__ = ["LoopState", "SamplingLoop", "TelemetryService", "TickReport"]
