"""
Tests for the asynchronous invocation wrapper
"""

import asyncio
import inspect
import unittest

from prometheus_client import CollectorRegistry

from apptelemetry import (
    InvalidArgumentError,
    Telemetry,
    TelemetryMetricRegistry,
    TelemetryType,
    instrumented,
)


class AsyncTelemetryTestCase(unittest.IsolatedAsyncioTestCase):
    """Base test case with a private Prometheus registry"""

    caller = 'OrderService'
    method_name = 'FetchPrice'

    def setUp(self):
        """Set up test fixtures"""
        self.backend = CollectorRegistry()
        self.telemetry = Telemetry(TelemetryMetricRegistry(registry=self.backend))

    def sample(self, name, method_name=None):
        value = self.backend.get_sample_value(name, {
            'Caller': self.caller,
            'MethodName': method_name or self.method_name,
        })
        return value or 0.0


class TestWrapAsync(AsyncTelemetryTestCase):
    """Test Telemetry.wrap"""

    async def test_success(self):
        """Example scenario: an http_client call sleeping 50ms and returning 42"""
        async def fetch_price():
            await asyncio.sleep(0.05)
            return 42

        result = await self.telemetry.wrap(self.caller, self.method_name, fetch_price,
                                           telemetry_type=TelemetryType.HTTP_CLIENT)

        self.assertEqual(result, 42)
        self.assertEqual(self.sample('http_client_attempt_total'), 1)
        self.assertEqual(self.sample('http_client_success_total'), 1)
        self.assertEqual(self.sample('http_client_fail_total'), 0)
        self.assertEqual(self.sample('http_client_concurrent_executions'), 0)
        self.assertEqual(self.sample('http_client_duration_seconds_count'), 1)
        self.assertGreaterEqual(self.sample('http_client_duration_seconds_sum'), 0.05)

    async def test_no_result(self):
        async def notify(events):
            events.append('sent')

        events = []
        result = await self.telemetry.wrap(self.caller, self.method_name, notify, events)

        self.assertIsNone(result)
        self.assertEqual(events, ['sent'])
        self.assertEqual(self.sample('all_success_total'), 1)

    async def test_awaitable_returning_callable(self):
        """Any callable returning an awaitable can be wrapped"""
        loop = asyncio.get_running_loop()

        def make_future():
            future = loop.create_future()
            loop.call_soon(future.set_result, 'done')
            return future

        result = await self.telemetry.wrap(self.caller, self.method_name, make_future)
        self.assertEqual(result, 'done')

    async def test_failure(self):
        error = ConnectionError('reset by peer')

        async def fetch_price():
            await asyncio.sleep(0)
            raise error

        with self.assertRaises(ConnectionError) as ctx:
            await self.telemetry.wrap(self.caller, self.method_name, fetch_price,
                                      telemetry_type=TelemetryType.HTTP_CLIENT)

        self.assertIs(ctx.exception, error)
        self.assertEqual(self.sample('http_client_attempt_total'), 1)
        self.assertEqual(self.sample('http_client_fail_total'), 1)
        self.assertEqual(self.sample('http_client_success_total'), 0)
        self.assertEqual(self.sample('http_client_duration_seconds_count'), 0)
        self.assertEqual(self.sample('http_client_concurrent_executions'), 0)

    async def test_validation_happens_before_await(self):
        called = []

        async def fetch_price():
            called.append(1)

        with self.assertRaises(InvalidArgumentError):
            await self.telemetry.wrap('  ', self.method_name, fetch_price)

        self.assertEqual(called, [])
        self.assertEqual(list(self.backend.collect()), [])

    async def test_default_category_is_all(self):
        async def noop():
            return None

        await self.telemetry.wrap(self.caller, self.method_name, noop)
        await self.telemetry.wrap(self.caller, self.method_name, noop,
                                  telemetry_type=TelemetryType.ALL)

        self.assertEqual(self.sample('all_attempt_total'), 2)
        self.assertEqual(self.sample('all_success_total'), 2)


class TestAsyncConcurrency(AsyncTelemetryTestCase):
    """Test the in-flight gauge with concurrently awaited calls"""

    async def test_gauge_tracks_in_flight_tasks(self):
        task_count = 10
        release = asyncio.Event()
        entered = []

        async def long_call(i):
            entered.append(i)
            await release.wait()
            return i

        tasks = [
            asyncio.create_task(self.telemetry.wrap(self.caller, self.method_name, long_call, i))
            for i in range(task_count)
        ]
        while len(entered) < task_count:
            await asyncio.sleep(0)

        self.assertEqual(self.sample('all_concurrent_executions'), task_count)

        release.set()
        results = await asyncio.gather(*tasks)

        self.assertEqual(sorted(results), list(range(task_count)))
        self.assertEqual(self.sample('all_concurrent_executions'), 0)
        self.assertEqual(self.sample('all_success_total'), task_count)

    async def test_cancelled_call_stays_in_flight(self):
        """Cancellation is not recorded; the gauge keeps the abandoned call"""
        started = asyncio.Event()

        async def hang():
            started.set()
            await asyncio.sleep(60)

        task = asyncio.create_task(self.telemetry.wrap(self.caller, self.method_name, hang))
        await started.wait()
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task

        self.assertEqual(self.sample('all_concurrent_executions'), 1)
        self.assertEqual(self.sample('all_fail_total'), 0)
        self.assertEqual(self.sample('all_success_total'), 0)


class TestInstrumentedAsync(AsyncTelemetryTestCase):
    """Test the instrumented decorator on coroutine functions"""

    async def test_coroutine_function(self):
        @instrumented(self.caller, telemetry=self.telemetry)
        async def fetch_price(sku):
            await asyncio.sleep(0)
            return sku.upper()

        self.assertTrue(inspect.iscoroutinefunction(fetch_price))
        self.assertEqual(await fetch_price('abc'), 'ABC')
        self.assertEqual(self.sample('all_success_total', 'fetch_price'), 1)

    async def test_coroutine_failure(self):
        @instrumented(self.caller, self.method_name, TelemetryType.HTTP_CLIENT, telemetry=self.telemetry)
        async def fetch_price():
            raise LookupError('no price')

        with self.assertRaises(LookupError):
            await fetch_price()

        self.assertEqual(self.sample('http_client_fail_total'), 1)
        self.assertEqual(self.sample('http_client_concurrent_executions'), 0)


if __name__ == '__main__':
    unittest.main()
