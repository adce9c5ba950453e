"""
Order Publisher

Publishes order documents on the order subject. Ships the fixed demonstration
order used to exercise a fresh deployment.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from aiokafka import AIOKafkaProducer

from orderstream.config import StreamSettings
from orderstream.schemas import Delivery, Item, Order, Payment

logger = structlog.get_logger(__name__)


def sample_order(order_uid: str = "123456", date_created: Optional[datetime] = None) -> Order:
    """The demonstration order document"""
    return Order(
        order_uid=order_uid,
        track_number="ABC123",
        entry="Test",
        delivery=Delivery(
            name="John Doe",
            phone="1234567890",
            zip="12345",
            city="New York",
            address="123 Main St",
            region="NY",
            email="johndoe@example.com",
        ),
        payment=Payment(
            transaction="ABCDEF",
            request_id="123456789",
            currency="USD",
            provider="PayPal",
            amount=100,
            payment_dt=1630000000,
            bank="Bank of America",
            delivery_cost=10,
            goods_total=90,
            custom_fee=5,
        ),
        items=[
            Item(chrt_id=1, track_number="ABC123", price=50, rid="abc123", name="Item 1",
                 sale=0, size="M", total_price=50, nm_id=1, brand="Brand 1", status=1),
            Item(chrt_id=2, track_number="DEF456", price=30, rid="def456", name="Item 2",
                 sale=0, size="L", total_price=30, nm_id=2, brand="Brand 2", status=1),
            Item(chrt_id=3, track_number="GHI789", price=20, rid="ghi789", name="Item 3",
                 sale=0, size="S", total_price=20, nm_id=3, brand="Brand 3", status=1),
        ],
        locale="en_US",
        internal_signature="abcdef123456",
        customer_id="987654321",
        delivery_service="UPS",
        shardkey="shard1",
        sm_id=123,
        date_created=date_created or datetime.now(timezone.utc),
        oof_shard="shard2",
    )


class OrderPublisher:
    """
    Kafka producer for order documents.

    Example:
        publisher = OrderPublisher(settings.stream)
        await publisher.start()
        await publisher.publish_sample()
        await publisher.stop()
    """

    def __init__(self, settings: StreamSettings, producer: Optional[AIOKafkaProducer] = None):
        self.settings = settings
        self._producer = producer

    def _create_producer(self) -> AIOKafkaProducer:
        return AIOKafkaProducer(
            bootstrap_servers=self.settings.bootstrap_servers,
            client_id=f"{self.settings.client_id}-publisher",
            acks="all",
            key_serializer=lambda k: k.encode("utf-8") if k else None,
        )

    async def start(self) -> None:
        if self._producer is None:
            self._producer = self._create_producer()
        await self._producer.start()

    async def stop(self) -> None:
        if self._producer is not None:
            await self._producer.stop()

    async def publish(self, order: Order) -> None:
        """Publish ``order`` and wait for the broker's acknowledgement"""
        logger.info("Publishing order", order_uid=order.order_uid, topic=self.settings.topic)
        metadata = await self._producer.send_and_wait(
            self.settings.topic,
            value=order.model_dump_json().encode("utf-8"),
            key=order.order_uid,
        )
        logger.info(
            "Order published",
            order_uid=order.order_uid,
            partition=metadata.partition,
            offset=metadata.offset,
        )

    async def publish_sample(self) -> Order:
        order = sample_order()
        await self.publish(order)
        return order
