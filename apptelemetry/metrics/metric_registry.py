# apptelemetry/metrics/metric_registry.py
"""
Metric Registry for method-level telemetry
==========================================

Lazily maps a (telemetry type, metric kind) pair to a Prometheus metric
and caches it for the lifetime of the registry. One metric object exists
per pair; the ``Caller`` and ``MethodName`` label values are resolved on
every call.

Metric names:
    <type>_duration_seconds         Histogram
    <type>_attempt_total            Counter
    <type>_success_total            Counter
    <type>_fail_total               Counter
    <type>_concurrent_executions    Gauge

Usage:
    from prometheus_client import CollectorRegistry
    from apptelemetry.metrics import TelemetryMetricRegistry, MetricKind
    from apptelemetry.telemetry_type import TelemetryType

    registry = TelemetryMetricRegistry(registry=CollectorRegistry())
    registry.get_or_create(TelemetryType.HTTP_CLIENT, MetricKind.ATTEMPT) \
        .labels("OrderService", "FetchPrice").inc()

Version: 1.0.0
Date: October 2026
"""

import logging
import math
import threading
from enum import Enum
from typing import Any, Dict, List, Optional

from prometheus_client import Counter, Gauge, Histogram, REGISTRY, CollectorRegistry

from apptelemetry.config import TelemetryConfig
from apptelemetry.telemetry_type import TelemetryType

logger = logging.getLogger(__name__)

LABEL_NAMES = ('Caller', 'MethodName')
INF = math.inf


class MetricKind(Enum):
    """Kind of metric tracked for every telemetry type."""
    DURATION = "duration"
    ATTEMPT = "attempt"
    SUCCESS = "success"
    FAIL = "fail"
    CONCURRENCY = "concurrency"

    @property
    def is_counter(self) -> bool:
        return self in (MetricKind.ATTEMPT, MetricKind.SUCCESS, MetricKind.FAIL)


_METRIC_TYPES = {
    MetricKind.DURATION: Histogram,
    MetricKind.ATTEMPT: Counter,
    MetricKind.SUCCESS: Counter,
    MetricKind.FAIL: Counter,
    MetricKind.CONCURRENCY: Gauge,
}


def metric_key(telemetry_type: TelemetryType, kind: MetricKind) -> str:
    """Lookup key: the type prefix, plus the status for counter kinds."""
    if kind.is_counter:
        return f"{telemetry_type.metric_prefix}_{kind.value}"
    return telemetry_type.metric_prefix


def metric_name(telemetry_type: TelemetryType, kind: MetricKind) -> str:
    """Exposed metric name for a (type, kind) pair."""
    key = metric_key(telemetry_type, kind)
    if kind is MetricKind.DURATION:
        return f"{key}_duration_seconds"
    if kind is MetricKind.CONCURRENCY:
        return f"{key}_concurrent_executions"
    return f"{key}_total"


def metric_description(telemetry_type: TelemetryType, kind: MetricKind) -> str:
    key = metric_key(telemetry_type, kind)
    if kind is MetricKind.DURATION:
        return f"Duration histogram for the {key}"
    if kind is MetricKind.CONCURRENCY:
        return f"Concurrent executions of {key}."
    return f"Total number of times on {key} happened."


class TelemetryMetricRegistry:
    """
    Lazily-populated registry of telemetry metrics.

    Keeps five independent mappings (duration histograms, attempt, success
    and fail counters, concurrency gauges) keyed by metric key. Entries are
    created on first use and never removed.

    Lookups do not lock. Creation is double-checked under a single lock that
    only guards the dictionary insert and backend registration.
    """

    def __init__(self, config: Optional[TelemetryConfig] = None,
                 registry: Optional[CollectorRegistry] = None):
        """
        Initialize the registry.

        Args:
            config: Optional TelemetryConfig (histogram buckets, backend registry)
            registry: Optional CollectorRegistry, overrides config.registry
        """
        self._config = config or TelemetryConfig()
        self._registry = registry or self._config.registry or REGISTRY
        self._lock = threading.Lock()

        self._duration_histograms: Dict[str, Histogram] = {}
        self._attempt_counters: Dict[str, Counter] = {}
        self._success_counters: Dict[str, Counter] = {}
        self._fail_counters: Dict[str, Counter] = {}
        self._gauges: Dict[str, Gauge] = {}

        self._maps = {
            MetricKind.DURATION: self._duration_histograms,
            MetricKind.ATTEMPT: self._attempt_counters,
            MetricKind.SUCCESS: self._success_counters,
            MetricKind.FAIL: self._fail_counters,
            MetricKind.CONCURRENCY: self._gauges,
        }
        self._names: List[str] = []

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    @property
    def config(self) -> TelemetryConfig:
        return self._config

    def get_or_create(self, telemetry_type: TelemetryType, kind: MetricKind) -> Any:
        """
        Return the metric for (telemetry_type, kind), creating it on first use.

        Repeated calls with the same arguments always return the same metric
        object, also when called concurrently from several threads.

        Raises:
            ValueError: if the backend already holds an incompatible metric
                        under the same name
        """
        metrics = self._maps[kind]
        key = metric_key(telemetry_type, kind)

        metric = metrics.get(key)
        if metric is not None:
            return metric

        with self._lock:
            metric = metrics.get(key)
            if metric is None:
                metric = self._create_metric(telemetry_type, kind)
                metrics[key] = metric
                self._names.append(metric_name(telemetry_type, kind))
        return metric

    def duration_histogram(self, telemetry_type: TelemetryType) -> Histogram:
        return self.get_or_create(telemetry_type, MetricKind.DURATION)

    def attempt_counter(self, telemetry_type: TelemetryType) -> Counter:
        return self.get_or_create(telemetry_type, MetricKind.ATTEMPT)

    def success_counter(self, telemetry_type: TelemetryType) -> Counter:
        return self.get_or_create(telemetry_type, MetricKind.SUCCESS)

    def fail_counter(self, telemetry_type: TelemetryType) -> Counter:
        return self.get_or_create(telemetry_type, MetricKind.FAIL)

    def concurrency_gauge(self, telemetry_type: TelemetryType) -> Gauge:
        return self.get_or_create(telemetry_type, MetricKind.CONCURRENCY)

    def registered_names(self) -> List[str]:
        """Names of all metrics created or adopted so far."""
        with self._lock:
            return sorted(self._names)

    def _create_metric(self, telemetry_type: TelemetryType, kind: MetricKind) -> Any:
        """Register a new metric with the backend, adopting an existing one on a name clash."""
        name = metric_name(telemetry_type, kind)
        description = metric_description(telemetry_type, kind)
        metric_cls = _METRIC_TYPES[kind]

        kwargs = {'registry': self._registry}
        if kind is MetricKind.DURATION:
            kwargs['buckets'] = self._config.histogram_buckets

        try:
            metric = metric_cls(name, description, LABEL_NAMES, **kwargs)
        except ValueError:
            existing = self._find_registered(name, metric_cls)
            if existing is None:
                raise
            if kind is MetricKind.DURATION and not self._same_buckets(existing):
                logger.warning(
                    f"Metric {name} already registered with the backend with buckets "
                    f"{tuple(existing._upper_bounds)}, reusing it instead of configured buckets "
                    f"{tuple(self._config.histogram_buckets)}")
            else:
                logger.warning(f"Metric {name} already registered with the backend, reusing it")
            return existing

        logger.info(f"Registered metric {name}")
        return metric

    def _find_registered(self, name: str, metric_cls) -> Optional[Any]:
        # prometheus_client keeps no public name lookup
        collectors = getattr(self._registry, '_names_to_collectors', {})
        existing = collectors.get(name)
        if not isinstance(existing, metric_cls):
            return None
        if tuple(getattr(existing, '_labelnames', ())) != LABEL_NAMES:
            return None
        return existing

    def _same_buckets(self, histogram: Histogram) -> bool:
        # The backend always closes the bucket list with +Inf
        configured = [float(b) for b in self._config.histogram_buckets]
        if configured[-1] != INF:
            configured.append(INF)
        return [float(b) for b in getattr(histogram, '_upper_bounds', ())] == configured
