#!/usr/bin/env python
"""
Demo: instrument sync and async calls of an order service and print
the resulting Prometheus metrics.
"""

import asyncio
import logging
import random
import sys

from prometheus_client import CollectorRegistry, generate_latest

from apptelemetry import Telemetry, TelemetryConfig, TelemetryType, instrumented

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)

logger = logging.getLogger(__name__)

registry = CollectorRegistry()
telemetry = Telemetry(config=TelemetryConfig.from_env(registry=registry))


def load_order(order_id):
    if order_id % 4 == 0:
        raise KeyError(f"order {order_id} not found")
    return {'order_id': order_id, 'sku': f"sku-{order_id}"}


@instrumented("OrderService", "FetchPrice", TelemetryType.HTTP_CLIENT, telemetry=telemetry)
async def fetch_price(sku):
    await asyncio.sleep(random.uniform(0.01, 0.05))
    return 42


async def main():
    """Main entry point"""
    logger.info("Starting order service demo")

    for order_id in range(1, 9):
        try:
            order = telemetry.wrap_sync("OrderService", "LoadOrder", load_order, order_id)
        except KeyError as e:
            logger.warning(f"Skipping order: {e}")
            continue

        price = await fetch_price(order['sku'])
        logger.info(f"Order {order_id}: {order['sku']} costs {price}")

    print(generate_latest(registry).decode('utf-8'))


if __name__ == '__main__':
    asyncio.run(main())
