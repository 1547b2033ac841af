"""Append-only JSON lines sink."""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List

from ..sampling.sampler import MemorySample
from .base import BaseSink, SinkWriteError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogRecord:
    """Single line of the JSON log file."""

    message: str
    collector_timestamp: str

    def to_json(self) -> str:
        return json.dumps(asdict(self))


class FileLogger(BaseSink):
    """Writes one JSON object per tick to a local file.

    The file is opened in append mode for every record and closed before the
    call returns, so nothing is held between ticks.
    """

    def __init__(self, path: Path, message: str = "otel-sla-logs") -> None:
        super().__init__("file-log")
        self._path = Path(path)
        self._message = message

    @property
    def path(self) -> Path:
        return self._path

    def record_for(self, sample: MemorySample) -> LogRecord:
        return LogRecord(message=self._message, collector_timestamp=sample.timestamp)

    def append(self, record: LogRecord) -> bool:
        """Append ``record``; failures are logged and reported as ``False``."""
        try:
            self._write(record)
        except SinkWriteError as exc:
            LOGGER.error("%s", exc)
            return False
        return True

    def _emit(self, sample: MemorySample) -> None:
        self._write(self.record_for(sample))

    def _write(self, record: LogRecord) -> None:
        try:
            line = record.to_json()
        except (TypeError, ValueError) as exc:
            raise SinkWriteError(f"Failed to marshal log record: {exc}") from exc

        try:
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError as exc:
            raise SinkWriteError(f"Failed to write log entry to {self._path}: {exc}") from exc
        LOGGER.debug("Appended log record to %s", self._path)


def read_records(path: Path) -> List[Dict[str, Any]]:
    """Read a JSON lines log file written by :class:`FileLogger`."""

    if not path.exists():
        return []

    records: List[Dict[str, Any]] = []
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if not line:
                continue
            records.append(json.loads(line))
    return records
