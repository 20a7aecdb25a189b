"""
Metrics Module for apptelemetry
===============================

Lazily created Prometheus counters, histograms and gauges for
method-level call statistics, one per (telemetry type, metric kind).

Usage:
    from apptelemetry.metrics import TelemetryMetricRegistry, MetricKind

    registry = TelemetryMetricRegistry()
    registry.attempt_counter(TelemetryType.ALL).labels("Caller", "Method").inc()

Version: 1.0.0
Date: October 2026
"""

from .metric_registry import (
    LABEL_NAMES,
    MetricKind,
    TelemetryMetricRegistry,
    metric_key,
    metric_name,
)

__all__ = [
    'LABEL_NAMES',
    'MetricKind',
    'TelemetryMetricRegistry',
    'metric_key',
    'metric_name',
]
