"""Logging utilities."""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import LoggingConfig

LOG_FILE_NAME = "otel-sla.log"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(config: LoggingConfig) -> Path:
    """Install the diagnostic handlers and return the rotating log path.

    The diagnostic log is unrelated to the JSON sink file written on every tick.
    """
    config.log_dir.mkdir(parents=True, exist_ok=True)
    log_path = config.log_dir / LOG_FILE_NAME

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    rotating_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=5)
    rotating_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logging.basicConfig(level=config.level, handlers=[rotating_handler, console_handler])
    # Exporter and SDK deprecation notices are routed through the same handlers.
    logging.captureWarnings(True)

    logging.getLogger(__name__).debug("Logging configured with path %s", log_path)
    return log_path
