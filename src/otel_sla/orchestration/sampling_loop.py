"""Periodic sampling loop fanning each sample out to every sink."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from ..config import SamplingConfig
from ..sampling.sampler import MemorySample, ResourceSampler
from ..sinks.base import BaseSink, SinkResult

LOGGER = logging.getLogger(__name__)


class LoopState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    CANCELLED = "cancelled"


@dataclass
class TickReport:
    """What happened during one tick."""

    index: int
    sample: MemorySample
    results: List[SinkResult] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return all(result.success for result in self.results)


class SamplingLoop:
    """Samples memory on a fixed interval and hands the sample to each sink.

    Cancellation is cooperative: the event is checked at every tick boundary
    and before each sink dispatch, and it also interrupts the wait between
    ticks.
    """

    def __init__(
        self,
        sampler: ResourceSampler,
        sinks: Sequence[BaseSink],
        config: Optional[SamplingConfig] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self._sampler = sampler
        self._sinks = list(sinks)
        self._config = config or SamplingConfig()
        self._cancel = cancel_event or threading.Event()
        self._state = LoopState.IDLE
        self._state_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._ticks = 0

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def ticks(self) -> int:
        return self._ticks

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel

    def run_once(self) -> Optional[TickReport]:
        """Execute a single tick.

        Returns:
            Optional[TickReport]: ``None`` when cancellation was already observed.
        """
        if self._cancel.is_set():
            return None

        sample = self._sampler.sample()
        report = TickReport(index=self._ticks, sample=sample)
        for sink in self._sinks:
            if self._cancel.is_set():
                LOGGER.debug("Cancellation observed during tick %d; skipping %s", report.index, sink.name)
                break
            report.results.append(sink.emit(sample))

        self._ticks += 1
        if not report.succeeded:
            failed = [result.sink for result in report.results if not result.success]
            LOGGER.warning("Tick %d completed with failed sinks: %s", report.index, ", ".join(failed))
        return report

    def start(self) -> None:
        """Run the loop on a background thread."""
        self._enter_running()
        self._thread = threading.Thread(
            target=self._run, name="otel-sla-sampling-loop", daemon=True
        )
        self._thread.start()

    def run_until_cancelled(self) -> None:
        """Run the loop in the calling thread until cancelled."""
        self._enter_running()
        self._run()

    def cancel(self) -> None:
        """Signal cancellation; an idle loop becomes cancelled and can no longer start."""
        if not self._cancel.is_set():
            LOGGER.info("Cancelling sampling loop")
        self._cancel.set()
        with self._state_lock:
            if self._state is LoopState.IDLE:
                self._state = LoopState.CANCELLED

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the background thread; returns whether it has exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _enter_running(self) -> None:
        with self._state_lock:
            if self._state is LoopState.IDLE and self._cancel.is_set():
                self._state = LoopState.CANCELLED
            if self._state is not LoopState.IDLE:
                raise RuntimeError(f"Sampling loop cannot start from state {self._state.value}")
            self._state = LoopState.RUNNING

    def _run(self) -> None:
        interval = self._config.tick_interval_sec
        LOGGER.info("Starting sampling loop (interval=%ss, sinks=%d)", interval, len(self._sinks))
        try:
            while not self._cancel.is_set():
                self.run_once()
                self._cancel.wait(interval)
        finally:
            with self._state_lock:
                self._state = LoopState.CANCELLED
            LOGGER.info("Sampling loop stopped after %d ticks", self._ticks)
