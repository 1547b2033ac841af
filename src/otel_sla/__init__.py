"""Process memory telemetry emitted to an OpenTelemetry collector and a JSON log."""

__version__ = "0.1.0"
