"""Process memory sampling."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import psutil

LOGGER = logging.getLogger(__name__)

BYTES_PER_MB = 1_048_576


def rfc3339(moment: datetime) -> str:
    """Render ``moment`` with second precision and its UTC offset (``Z`` for UTC)."""

    if moment.tzinfo is None:
        moment = moment.astimezone()
    rendered = moment.isoformat(timespec="seconds")
    if rendered.endswith("+00:00"):
        rendered = rendered[: -len("+00:00")] + "Z"
    return rendered


def local_now() -> datetime:
    return datetime.now().astimezone()


@dataclass(frozen=True)
class MemorySample:
    """Memory held by the process at one instant."""

    bytes_allocated: int
    captured_at: datetime

    @property
    def megabytes(self) -> float:
        """Allocation in MB as reported by the gauge."""
        return self.bytes_allocated / BYTES_PER_MB

    @property
    def whole_megabytes(self) -> int:
        """Allocation in whole MB as added to the counter."""
        return self.bytes_allocated // BYTES_PER_MB

    @property
    def timestamp(self) -> str:
        return rfc3339(self.captured_at)


class ResourceSampler:
    """Reads the resident memory of the current process on demand.

    A failed read never propagates: the previous value (zero before the first
    successful read) is reported instead.
    """

    def __init__(
        self,
        process: Optional[psutil.Process] = None,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._process = process or psutil.Process(os.getpid())
        self._clock = clock
        self._last_bytes = 0

    def sample(self) -> MemorySample:
        try:
            allocated = int(self._process.memory_info().rss)
        except (psutil.Error, OSError) as exc:
            LOGGER.warning(
                "Memory stats unavailable (%s); reporting last value %d", exc, self._last_bytes
            )
            allocated = self._last_bytes
        else:
            self._last_bytes = max(allocated, 0)
            allocated = self._last_bytes

        sample = MemorySample(bytes_allocated=allocated, captured_at=self._clock())
        LOGGER.debug("Memory sample: %d bytes at %s", sample.bytes_allocated, sample.timestamp)
        return sample
