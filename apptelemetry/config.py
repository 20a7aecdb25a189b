# apptelemetry/config.py
"""
Configuration for the telemetry metric registry.

Settings can be given directly, read from a flat properties mapping
(``telemetry.histogram.buckets=0.01,0.1,1,+Inf``) or from the environment
(``TELEMETRY_HISTOGRAM_BUCKETS``).
"""

import logging
import math
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple

from prometheus_client import CollectorRegistry, Histogram

logger = logging.getLogger(__name__)

BUCKETS_PROPERTY = 'telemetry.histogram.buckets'
BUCKETS_ENV_VAR = 'TELEMETRY_HISTOGRAM_BUCKETS'

# Default latency buckets (in seconds)
DEFAULT_LATENCY_BUCKETS: Tuple[float, ...] = tuple(Histogram.DEFAULT_BUCKETS)


def parse_buckets(raw: Any) -> Tuple[float, ...]:
    """
    Parse histogram buckets from a comma-separated string or a sequence.

    Args:
        raw: e.g. "0.005, 0.01, 0.1, 1, +Inf" or (0.005, 0.01)

    Returns:
        Tuple of strictly increasing floats

    Raises:
        ValueError: if a value is not numeric, the list is empty,
                    or the values are not strictly increasing,
                    or no bucket is finite
    """
    if isinstance(raw, str):
        parts = [p.strip() for p in raw.split(',') if p.strip()]
    else:
        parts = list(raw)

    if not parts:
        raise ValueError("Histogram buckets must not be empty")

    buckets = []
    for part in parts:
        try:
            value = float(part)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid histogram bucket: {part!r}")
        if math.isnan(value):
            raise ValueError(f"Invalid histogram bucket: {part!r}")
        if buckets and value <= buckets[-1]:
            raise ValueError(
                f"Histogram buckets must be strictly increasing, got {value} after {buckets[-1]}")
        buckets.append(value)

    if all(math.isinf(b) for b in buckets):
        raise ValueError("Histogram buckets need at least one finite upper bound")

    return tuple(buckets)


@dataclass
class TelemetryConfig:
    """Settings for metric creation."""
    histogram_buckets: Sequence[float] = DEFAULT_LATENCY_BUCKETS
    registry: Optional[CollectorRegistry] = None  # None means the process default REGISTRY

    def __post_init__(self):
        self.histogram_buckets = parse_buckets(self.histogram_buckets)

    @classmethod
    def from_properties(cls, props: Mapping[str, str],
                        registry: Optional[CollectorRegistry] = None) -> 'TelemetryConfig':
        """Build a config from a flat dotted-key properties mapping."""
        raw = props.get(BUCKETS_PROPERTY)
        if raw is None:
            return cls(registry=registry)
        logger.info(f"Using histogram buckets from property {BUCKETS_PROPERTY}: {raw}")
        return cls(histogram_buckets=parse_buckets(raw), registry=registry)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None,
                 registry: Optional[CollectorRegistry] = None) -> 'TelemetryConfig':
        """Build a config from environment variables."""
        environ = os.environ if environ is None else environ
        raw = environ.get(BUCKETS_ENV_VAR)
        if not raw:
            return cls(registry=registry)
        logger.info(f"Using histogram buckets from {BUCKETS_ENV_VAR}: {raw}")
        return cls(histogram_buckets=parse_buckets(raw), registry=registry)
