"""Memory sampling for the telemetry loop."""
from .sampler import BYTES_PER_MB, MemorySample, ResourceSampler, rfc3339

__all__ = ["BYTES_PER_MB", "MemorySample", "ResourceSampler", "rfc3339"]
