# apptelemetry/__init__.py
"""
apptelemetry - Method-level call statistics on Prometheus
=========================================================

Wraps sync and async callables and records, per (telemetry type, caller,
method name), the number of attempts, successes and failures, the number
of in-flight calls, and the call duration.

Usage:
    from apptelemetry import Telemetry, TelemetryType

    telemetry = Telemetry()
    result = telemetry.wrap_sync("OrderService", "FetchPrice", fetch_price)
    result = await telemetry.wrap("OrderService", "FetchPrice", fetch_price_async,
                                  telemetry_type=TelemetryType.HTTP_CLIENT)

Version: 1.0.0
Date: October 2026
"""

from .config import TelemetryConfig
from .core_utils import Stopwatch
from .exceptions import InvalidArgumentError
from .metrics import MetricKind, TelemetryMetricRegistry, metric_name
from .telemetry import (
    Telemetry,
    TelemetryBase,
    get_telemetry,
    instrumented,
    reset_telemetry,
)
from .telemetry_type import TelemetryType

__all__ = [
    'InvalidArgumentError',
    'MetricKind',
    'Stopwatch',
    'Telemetry',
    'TelemetryBase',
    'TelemetryConfig',
    'TelemetryMetricRegistry',
    'TelemetryType',
    'get_telemetry',
    'instrumented',
    'metric_name',
    'reset_telemetry',
]

__version__ = '1.0.0'
