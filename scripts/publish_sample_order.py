"""
Publish the demonstration order on the configured order subject.

Usage:
    python scripts/publish_sample_order.py [--uid ORDER_UID]
"""

import argparse
import asyncio

from orderstream.config import get_settings
from orderstream.config.logging import configure_logging
from orderstream.ingestion import OrderPublisher, sample_order


async def main(order_uid: str) -> None:
    settings = get_settings()
    configure_logging(settings.monitoring)

    publisher = OrderPublisher(settings.stream)
    await publisher.start()
    try:
        await publisher.publish(sample_order(order_uid))
    finally:
        await publisher.stop()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Publish a sample order")
    parser.add_argument("--uid", default="123456", help="Order UID of the published document")
    args = parser.parse_args()

    asyncio.run(main(args.uid))
