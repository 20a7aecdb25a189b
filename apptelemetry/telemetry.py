# apptelemetry/telemetry.py
"""
Invocation wrapper that records attempt, success, failure, in-flight
and duration metrics around arbitrary sync or async callables.

Every wrapped call goes through the same three phases:

1. pre_invoke          - validate labels, count the attempt, gauge +1, start stopwatch
2. execute             - run (or await) the callable
3. post_invoke_success - gauge -1, count the success, observe the duration
   post_invoke_failure - gauge -1, count the failure, re-raise unchanged

Usage:
    telemetry = Telemetry()

    price = telemetry.wrap_sync("OrderService", "FetchPrice", fetch_price, sku)
    price = await telemetry.wrap("OrderService", "FetchPrice", fetch_price_async, sku,
                                 telemetry_type=TelemetryType.HTTP_CLIENT)

    @instrumented("OrderService", telemetry_type=TelemetryType.HTTP_CLIENT)
    async def fetch_price(sku):
        ...

Note:
    A cancelled async call (asyncio.CancelledError) is neither a success nor
    a failure here; its concurrency gauge stays incremented.
"""

import functools
import inspect
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Optional

from apptelemetry.config import TelemetryConfig
from apptelemetry.core_utils import Stopwatch, validate_label_value
from apptelemetry.metrics import TelemetryMetricRegistry
from apptelemetry.telemetry_type import TelemetryType

logger = logging.getLogger(__name__)


class TelemetryBase(ABC):
    """
    Contract for method-level telemetry.

    Subclasses supply the three phase primitives; the wrapping helpers are
    built once on top of them.
    """

    @abstractmethod
    def pre_invoke(self, caller: str, method_name: str,
                   telemetry_type: TelemetryType = TelemetryType.ALL) -> Stopwatch:
        pass

    @abstractmethod
    def post_invoke_success(self, watch: Stopwatch, caller: str, method_name: str,
                            telemetry_type: TelemetryType = TelemetryType.ALL) -> None:
        pass

    @abstractmethod
    def post_invoke_failure(self, watch: Stopwatch, caller: str, method_name: str,
                            exc: BaseException,
                            telemetry_type: TelemetryType = TelemetryType.ALL) -> None:
        pass

    @contextmanager
    def instrument(self, caller: str, method_name: str,
                   telemetry_type: TelemetryType = TelemetryType.ALL):
        """
        Context manager running the pre/post phases around a block of code.

        Usage:
            with telemetry.instrument("OrderService", "FetchPrice"):
                fetch_price()
        """
        watch = self.pre_invoke(caller, method_name, telemetry_type)
        try:
            yield watch
        except Exception as e:
            self.post_invoke_failure(watch, caller, method_name, e, telemetry_type)
            raise
        else:
            self.post_invoke_success(watch, caller, method_name, telemetry_type)

    def wrap_sync(self, caller: str, method_name: str, func: Callable[..., Any], *args,
                  telemetry_type: TelemetryType = TelemetryType.ALL, **kwargs) -> Any:
        """
        Call func(*args, **kwargs) synchronously with telemetry.

        Args:
            caller: Caller label value
            method_name: MethodName label value
            func: Callable to run; a callable without a result returns None
            telemetry_type: Category of the metrics, defaults to TelemetryType.ALL

        Returns:
            Whatever func returns

        Raises:
            InvalidArgumentError: if caller or method_name is blank
            TypeError: if func is a coroutine function (use wrap instead)
            Any exception raised by func, unchanged
        """
        if inspect.iscoroutinefunction(func):
            raise TypeError(f"{method_name}: coroutine function passed to wrap_sync, use wrap")
        with self.instrument(caller, method_name, telemetry_type):
            return func(*args, **kwargs)

    async def wrap(self, caller: str, method_name: str, func: Callable[..., Any], *args,
                   telemetry_type: TelemetryType = TelemetryType.ALL, **kwargs) -> Any:
        """
        Await func(*args, **kwargs) with telemetry.

        func may be a coroutine function or any callable returning an awaitable.
        """
        with self.instrument(caller, method_name, telemetry_type):
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            return result


class Telemetry(TelemetryBase):
    """Prometheus-backed telemetry for method invocations."""

    def __init__(self, metric_registry: Optional[TelemetryMetricRegistry] = None,
                 config: Optional[TelemetryConfig] = None):
        """
        Args:
            metric_registry: Registry to record into; a new one is built from config if omitted
            config: Optional TelemetryConfig used when metric_registry is omitted
        """
        self._metrics = metric_registry or TelemetryMetricRegistry(config=config)

    @property
    def metrics(self) -> TelemetryMetricRegistry:
        return self._metrics

    def pre_invoke(self, caller, method_name, telemetry_type=TelemetryType.ALL):
        validate_label_value('caller', caller)
        validate_label_value('method_name', method_name)

        self._metrics.attempt_counter(telemetry_type).labels(caller, method_name).inc()
        self._metrics.concurrency_gauge(telemetry_type).labels(caller, method_name).inc()

        return Stopwatch.start_new()

    def post_invoke_success(self, watch, caller, method_name, telemetry_type=TelemetryType.ALL):
        self._metrics.concurrency_gauge(telemetry_type).labels(caller, method_name).dec()
        self._metrics.success_counter(telemetry_type).labels(caller, method_name).inc()
        self._metrics.duration_histogram(telemetry_type).labels(caller, method_name).observe(
            watch.elapsed_seconds())

    def post_invoke_failure(self, watch, caller, method_name, exc, telemetry_type=TelemetryType.ALL):
        # Failed calls are not observed in the duration histogram
        self._metrics.concurrency_gauge(telemetry_type).labels(caller, method_name).dec()
        self._metrics.fail_counter(telemetry_type).labels(caller, method_name).inc()

        logger.debug(f"{telemetry_type}: {caller}.{method_name} failed with "
                     f"{type(exc).__name__}: {exc}")


_default_telemetry: Optional[Telemetry] = None
_default_lock = threading.Lock()


def get_telemetry() -> Telemetry:
    """Process-wide Telemetry on the default Prometheus registry, configured from the environment."""
    global _default_telemetry
    if _default_telemetry is None:
        with _default_lock:
            if _default_telemetry is None:
                _default_telemetry = Telemetry(config=TelemetryConfig.from_env())
                logger.info("Default telemetry initialized")
    return _default_telemetry


def reset_telemetry():
    """Forget the process-wide instance. Metrics already registered stay in the default registry."""
    global _default_telemetry
    with _default_lock:
        _default_telemetry = None


# =============================================================================
# Decorator Helpers
# =============================================================================

def instrumented(caller: str, method_name: Optional[str] = None,
                 telemetry_type: TelemetryType = TelemetryType.ALL,
                 telemetry: Optional[TelemetryBase] = None) -> Callable:
    """
    Decorator recording telemetry for every call of a sync or async function.

    Usage:
        @instrumented("OrderService", telemetry_type=TelemetryType.HTTP_CLIENT)
        def fetch_price(sku):
            pass

    Args:
        caller: Caller label value
        method_name: MethodName label value, defaults to the function's __name__
        telemetry_type: Category of the metrics
        telemetry: Telemetry instance, defaults to get_telemetry() at call time
    """
    def decorator(func: Callable) -> Callable:
        name = method_name or func.__name__

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            target = telemetry or get_telemetry()
            with target.instrument(caller, name, telemetry_type):
                return await func(*args, **kwargs)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            target = telemetry or get_telemetry()
            with target.instrument(caller, name, telemetry_type):
                return func(*args, **kwargs)

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return wrapper

    return decorator
