# apptelemetry/telemetry_type.py
"""
Telemetry categories used to partition method-level metrics by subsystem.
"""

from enum import Enum


class TelemetryType(Enum):
    """Category of telemetry. The lower-cased member name prefixes every metric name."""
    HTTP_CLIENT = "http_client"
    ALL = "all"            # Default when no category is given

    @property
    def metric_prefix(self) -> str:
        return self.name.lower()

    def __str__(self):
        return self.metric_prefix
