"""Tests for the process memory sampler."""
from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import psutil
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from otel_sla.sampling.sampler import BYTES_PER_MB, MemorySample, ResourceSampler, rfc3339

FIXED_TIME = datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)


class FakeProcess:
    """Stand-in for psutil.Process returning scripted RSS values."""

    def __init__(self, *values) -> None:
        self._values = list(values)

    def memory_info(self) -> SimpleNamespace:
        value = self._values.pop(0) if len(self._values) > 1 else self._values[0]
        if isinstance(value, Exception):
            raise value
        return SimpleNamespace(rss=value)


def _sampler(*values) -> ResourceSampler:
    return ResourceSampler(process=FakeProcess(*values), clock=lambda: FIXED_TIME)


def test_five_mebibytes_converts_to_counter_and_gauge_values() -> None:
    sample = _sampler(5_242_880).sample()

    assert sample.bytes_allocated == 5_242_880
    assert sample.whole_megabytes == 5
    assert sample.megabytes == 5.0


@pytest.mark.parametrize("allocated", [0, 1, BYTES_PER_MB - 1, BYTES_PER_MB, 3 * BYTES_PER_MB + 17, 2**40])
def test_conversions_match_floor_and_exact_division(allocated: int) -> None:
    sample = MemorySample(bytes_allocated=allocated, captured_at=FIXED_TIME)

    assert sample.whole_megabytes == allocated // 2**20
    assert sample.megabytes == pytest.approx(allocated / 2**20)
    assert sample.whole_megabytes >= 0


def test_sample_uses_clock_for_timestamp() -> None:
    sample = _sampler(1024).sample()

    assert sample.captured_at == FIXED_TIME
    assert sample.timestamp == "2024-01-02T03:04:05Z"


def test_unavailable_stats_report_zero_before_first_read() -> None:
    sample = _sampler(psutil.AccessDenied()).sample()

    assert sample.bytes_allocated == 0


def test_unavailable_stats_report_previous_value() -> None:
    sampler = _sampler(4 * BYTES_PER_MB, OSError("gone"))

    first = sampler.sample()
    second = sampler.sample()

    assert first.bytes_allocated == 4 * BYTES_PER_MB
    assert second.bytes_allocated == 4 * BYTES_PER_MB


def test_back_to_back_samples_never_yield_negative_counter_delta() -> None:
    sampler = ResourceSampler()

    first = sampler.sample()
    second = sampler.sample()

    assert first.whole_megabytes >= 0
    assert second.whole_megabytes >= 0
    assert second.captured_at >= first.captured_at


def test_rfc3339_keeps_non_utc_offset() -> None:
    moment = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone(timedelta(hours=2)))

    assert rfc3339(moment) == "2024-06-01T12:00:00+02:00"


def test_rfc3339_parses_back_to_same_instant() -> None:
    rendered = rfc3339(FIXED_TIME)

    parsed = datetime.fromisoformat(rendered.replace("Z", "+00:00"))
    assert parsed == FIXED_TIME.replace(microsecond=0)
