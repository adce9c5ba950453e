"""
Kafka Order Stream Consumer

Turns each delivered order document into a durable, cached record:

    received -> decoded -> persisted -> indexed -> cached -> acknowledged

- Durable subscription: a named consumer group with manual offset commits, so
  a restart resumes from the last acknowledged position
- Acknowledgement (offset commit) only after the order is persisted, indexed
  and cached
- Failed persistence seeks the partition back to the message, so the broker
  redelivers it; there is no in-process retry loop
- Malformed payloads are logged and left unacknowledged
- Graceful shutdown waits for the in-flight message
"""

import asyncio
import time
from typing import Any, Optional

import structlog
from aiokafka import AIOKafkaConsumer
from aiokafka.structs import TopicPartition
from aiokafka.errors import KafkaConnectionError, KafkaError
from prometheus_client import Counter, Histogram
from pydantic import ValidationError

from orderstream.config import StreamSettings
from orderstream.database.store import OrderStore
from orderstream.errors import DecodeError, DuplicateOrderError, OrderStreamError
from orderstream.schemas import Order
from orderstream.serving.cache import OrderCache

logger = structlog.get_logger(__name__)


# =============================================================================
# METRICS
# =============================================================================

ORDERS_CONSUMED = Counter(
    "orderstream_orders_consumed_total",
    "Order messages consumed, by outcome",
    ["status"],
)

ORDER_PROCESSING_TIME = Histogram(
    "orderstream_order_processing_seconds",
    "Time from delivery to acknowledgement",
)


def decode_order(payload: Optional[bytes]) -> Order:
    """
    Parse a message payload into an order aggregate.

    Raises:
        DecodeError: The payload is empty, not JSON, or not an order document
    """
    if not payload:
        raise DecodeError("Empty message payload")
    try:
        return Order.model_validate_json(payload)
    except ValidationError as e:
        raise DecodeError(f"Invalid order document: {e.error_count()} error(s)") from e


# =============================================================================
# STREAM CONSUMER
# =============================================================================

class OrderStreamConsumer:
    """
    Durable consumer of the order subject.

    Deliveries are processed one at a time. Redelivery of an order whose UID
    is already persisted is skipped and acknowledged; if that order never
    reached the cache, the write-through is completed first.

    Example:
        consumer = OrderStreamConsumer(settings.stream, store, cache, settings.cache.app_key)
        await consumer.start()
        task = asyncio.create_task(consumer.run())
        ...
        await consumer.stop()
    """

    def __init__(
        self,
        settings: StreamSettings,
        store: OrderStore,
        cache: OrderCache,
        app_key: str,
        kafka_consumer: Optional[AIOKafkaConsumer] = None,
    ):
        self.settings = settings
        self._store = store
        self._cache = cache
        self._app_key = app_key
        self._consumer = kafka_consumer
        self._running = False
        self._inflight = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._running

    def _create_consumer(self) -> AIOKafkaConsumer:
        """Create and configure the Kafka consumer"""
        return AIOKafkaConsumer(
            self.settings.topic,
            bootstrap_servers=self.settings.bootstrap_servers,
            group_id=self.settings.durable_name,
            client_id=self.settings.client_id,
            auto_offset_reset=self.settings.auto_offset_reset,
            enable_auto_commit=False,
            # Unacknowledged work past this window is handed to the group again
            max_poll_interval_ms=self.settings.ack_timeout_ms,
            session_timeout_ms=self.settings.session_timeout_ms,
            heartbeat_interval_ms=self.settings.heartbeat_interval_ms,
            key_deserializer=lambda k: k.decode("utf-8") if k else None,
        )

    # =========================================================================
    # MESSAGE PROTOCOL
    # =========================================================================

    async def process(self, payload: Optional[bytes]) -> int:
        """
        Decode, persist, index and cache one order document.

        The index append precedes the cache update, so the durable index is
        never behind the in-memory cache.

        Returns:
            Store identifier of the order

        Raises:
            DecodeError: Malformed payload
            PersistenceError: Store write or index append failed
        """
        order = decode_order(payload)

        try:
            order_id = await self._store.write_order(order)
        except DuplicateOrderError as e:
            order_id = e.order_id
            if order_id in self._cache:
                logger.info("Duplicate order skipped", order_uid=order.order_uid, order_id=order_id)
                return order_id
            logger.info(
                "Duplicate order not cached, completing write-through",
                order_uid=order.order_uid,
                order_id=order_id,
            )
            order = await self._store.read_order(order_id)

        await self._store.append_cache_index(order_id, self._app_key)
        self._cache.put(order_id, order)
        return order_id

    async def handle_message(self, message: Any) -> bool:
        """
        Process one delivery and acknowledge it on success.

        Returns:
            True if the message was acknowledged
        """
        start_time = time.perf_counter()
        log = logger.bind(topic=message.topic, partition=message.partition, offset=message.offset)

        try:
            order_id = await self.process(message.value)
        except DecodeError as e:
            log.error(
                "Malformed order message, not acknowledged",
                error=str(e),
                key=getattr(message, "key", None),
                payload_size=len(message.value or b""),
            )
            ORDERS_CONSUMED.labels(status="malformed").inc()
            return False
        except OrderStreamError as e:
            log.error("Order processing failed, awaiting redelivery", error=str(e), error_type=type(e).__name__)
            ORDERS_CONSUMED.labels(status="error").inc()
            await self._redeliver(message)
            return False

        if not await self._acknowledge(message):
            ORDERS_CONSUMED.labels(status="unacknowledged").inc()
            return False

        ORDER_PROCESSING_TIME.observe(time.perf_counter() - start_time)
        ORDERS_CONSUMED.labels(status="success").inc()
        log.info("Order message acknowledged", order_id=order_id)
        return True

    async def _acknowledge(self, message: Any) -> bool:
        tp = TopicPartition(message.topic, message.partition)
        try:
            await self._consumer.commit({tp: message.offset + 1})
        except KafkaError as e:
            # Redelivered later; the duplicate UID check makes that safe
            logger.error("Acknowledgement failed", offset=message.offset, error=str(e))
            return False
        return True

    async def _redeliver(self, message: Any) -> None:
        """Rewind the partition so the broker delivers ``message`` again"""
        if self.settings.redelivery_delay_ms:
            await asyncio.sleep(self.settings.redelivery_delay_ms / 1000)
        try:
            self._consumer.seek(TopicPartition(message.topic, message.partition), message.offset)
        except KafkaError as e:
            # Partition revoked; its next owner resumes from the last commit
            logger.warning(
                "Unable to rewind partition",
                partition=message.partition,
                offset=message.offset,
                error=str(e),
            )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        """Connect and join the durable subscription"""
        logger.info(
            "Starting order stream consumer",
            topic=self.settings.topic,
            durable_name=self.settings.durable_name,
        )
        if self._consumer is None:
            self._consumer = self._create_consumer()
        await self._consumer.start()
        self._running = True

    async def run(self) -> None:
        """Consume until ``stop()`` is called; ``start()`` must be awaited first"""
        if self._consumer is None:
            raise RuntimeError("Consumer not started. Call start() first.")

        try:
            async for message in self._consumer:
                async with self._inflight:
                    if not self._running:
                        break
                    await self.handle_message(message)
        except KafkaConnectionError as e:
            logger.error("Kafka connection error", error=str(e))
            raise
        finally:
            self._running = False
            logger.info("Order stream consumer loop finished")

    async def stop(self) -> None:
        """
        Stop the consumer gracefully.

        Waits for the in-flight message to be acknowledged or left for
        redelivery before releasing the subscription.
        """
        logger.info("Stopping order stream consumer")
        self._running = False

        async with self._inflight:
            if self._consumer is not None:
                await self._consumer.stop()

        logger.info("Order stream consumer stopped")
