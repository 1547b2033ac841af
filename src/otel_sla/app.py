"""CLI entrypoint for the telemetry emitter."""
from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

import yaml
from pydantic import ValidationError

from .config import load_config
from .orchestration.service import TelemetryService
from .sinks.base import TelemetryError

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Report process memory to an OTLP collector")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to configuration file",
    )
    parser.add_argument(
        "--endpoint",
        type=str,
        default=None,
        help="Collector address as host:port (overrides configuration)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="JSON lines file receiving one record per tick",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between sampling ticks",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Sample a single tick, flush, and exit (diagnostics only)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValidationError, yaml.YAMLError) as exc:
        LOGGER.critical("Could not load configuration: %s", exc)
        sys.exit(1)
    if args.endpoint:
        config.exporter.endpoint = args.endpoint
    if args.log_file:
        config.file_log.path = Path(args.log_file)
    if args.interval is not None:
        if args.interval <= 0:
            raise SystemExit("--interval must be positive")
        config.sampling.tick_interval_sec = args.interval

    try:
        service = TelemetryService(config)
    except TelemetryError as exc:
        LOGGER.critical("Could not initialize telemetry: %s", exc)
        sys.exit(1)

    def _handle_signal(signum: int, _frame: object) -> None:
        LOGGER.info("Received signal %s", signal.Signals(signum).name)
        service.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    try:
        if args.once:
            service.run_once()
        else:
            service.run_forever()
    finally:
        service.shutdown()


if __name__ == "__main__":
    main()
