"""
Order Store

Transactional persistence of the order aggregate and the persisted cache index.
Every statement is built with SQLAlchemy constructs, so all values (including
the application key) travel as bound parameters.
"""

from typing import Dict, List, Optional, Sequence

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orderstream.database.connection import get_db
from orderstream.database.models import (
    CacheIndexEntry,
    DeliveryRecord,
    ItemRecord,
    OrderItemLink,
    OrderRecord,
    PaymentRecord,
)
from orderstream.errors import (
    DependentRowError,
    DuplicateOrderError,
    EmptyCacheIndexError,
    OrderNotFoundError,
    PersistenceError,
)
from orderstream.schemas import Delivery, Item, Order, Payment

logger = structlog.get_logger(__name__)


class OrderStore:
    """
    Relational store for order aggregates.

    Example:
        store = OrderStore(create_session_factory(engine))
        order_id = await store.write_order(order)
        await store.append_cache_index(order_id, "WB-1")
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # =========================================================================
    # AGGREGATE PERSISTENCE
    # =========================================================================

    async def write_order(self, order: Order) -> int:
        """
        Persist the full aggregate in one transaction.

        Items, payment and delivery are inserted first, then the order row
        referencing them, then one junction row per item. Any failure rolls
        back every row of the attempt.

        Args:
            order: Aggregate to persist

        Returns:
            Store-assigned order identifier

        Raises:
            DuplicateOrderError: ``order.order_uid`` is already persisted
            PersistenceError: The transaction failed
        """
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    order_id = await self._insert_aggregate(session, order)
        except IntegrityError as e:
            existing_id = await self.find_order_id(order.order_uid)
            if existing_id is not None:
                logger.info(
                    "Order already persisted",
                    order_uid=order.order_uid,
                    order_id=existing_id,
                )
                raise DuplicateOrderError(order.order_uid, existing_id) from e
            logger.error("Unable to insert order", order_uid=order.order_uid, error=str(e))
            raise PersistenceError(f"Unable to insert order {order.order_uid!r}") from e
        except SQLAlchemyError as e:
            logger.error("Unable to insert order", order_uid=order.order_uid, error=str(e))
            raise PersistenceError(f"Unable to insert order {order.order_uid!r}") from e

        logger.info("Order added to store", order_uid=order.order_uid, order_id=order_id)
        return order_id

    async def _insert_aggregate(self, session: AsyncSession, order: Order) -> int:
        item_rows = [ItemRecord(**item.model_dump()) for item in order.items]
        session.add_all(item_rows)
        await session.flush()

        payment_row = PaymentRecord(**order.payment.model_dump())
        session.add(payment_row)
        await session.flush()

        delivery_row = DeliveryRecord(**order.delivery.model_dump())
        session.add(delivery_row)
        await session.flush()

        order_row = OrderRecord(
            **order.model_dump(exclude={"delivery", "payment", "items"}),
            delivery_id=delivery_row.id,
            payment_id=payment_row.id,
        )
        session.add(order_row)
        await session.flush()

        session.add_all(
            OrderItemLink(order_id=order_row.id, item_id=item_row.id, position=position)
            for position, item_row in enumerate(item_rows)
        )
        await session.flush()
        return order_row.id

    async def read_order(self, order_id: int) -> Order:
        """
        Reconstruct a full aggregate by identifier.

        Raises:
            OrderNotFoundError: No order row with this identifier
            DependentRowError: Payment, delivery or an item row is missing
            PersistenceError: The query failed
        """
        try:
            async with self._session_factory() as session:
                return await self._load_aggregate(session, order_id)
        except SQLAlchemyError as e:
            logger.error("Unable to read order", order_id=order_id, error=str(e))
            raise PersistenceError(f"Unable to read order {order_id}") from e

    async def _load_aggregate(self, session: AsyncSession, order_id: int) -> Order:
        order_row = await session.get(OrderRecord, order_id)
        if order_row is None:
            raise OrderNotFoundError(order_id)

        payment_row = await session.get(PaymentRecord, order_row.payment_id)
        if payment_row is None:
            logger.error("Payment row missing", order_id=order_id, payment_id=order_row.payment_id)
            raise DependentRowError(order_id, "payment", order_row.payment_id)

        delivery_row = await session.get(DeliveryRecord, order_row.delivery_id)
        if delivery_row is None:
            logger.error("Delivery row missing", order_id=order_id, delivery_id=order_row.delivery_id)
            raise DependentRowError(order_id, "delivery", order_row.delivery_id)

        result = await session.execute(
            select(OrderItemLink.item_id)
            .where(OrderItemLink.order_id == order_id)
            .order_by(OrderItemLink.position)
        )
        item_ids = list(result.scalars())

        items: List[Item] = []
        if item_ids:
            result = await session.execute(select(ItemRecord).where(ItemRecord.id.in_(item_ids)))
            rows: Dict[int, ItemRecord] = {row.id: row for row in result.scalars()}
            for item_id in item_ids:
                row = rows.get(item_id)
                if row is None:
                    logger.error("Item row missing", order_id=order_id, item_id=item_id)
                    raise DependentRowError(order_id, "item", item_id)
                items.append(Item.model_validate(row, from_attributes=True))

        return Order(
            order_uid=order_row.order_uid,
            track_number=order_row.track_number,
            entry=order_row.entry,
            delivery=Delivery.model_validate(delivery_row, from_attributes=True),
            payment=Payment.model_validate(payment_row, from_attributes=True),
            items=items,
            locale=order_row.locale,
            internal_signature=order_row.internal_signature,
            customer_id=order_row.customer_id,
            delivery_service=order_row.delivery_service,
            shardkey=order_row.shardkey,
            sm_id=order_row.sm_id,
            date_created=order_row.date_created,
            oof_shard=order_row.oof_shard,
        )

    async def find_order_id(self, order_uid: str) -> Optional[int]:
        """Identifier of the order persisted under ``order_uid``, if any"""
        try:
            async with get_db(self._session_factory) as session:
                result = await session.execute(
                    select(OrderRecord.id).where(OrderRecord.order_uid == order_uid)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Unable to look up order {order_uid!r}") from e

    # =========================================================================
    # CACHE INDEX
    # =========================================================================

    async def append_cache_index(self, order_id: int, app_key: str) -> None:
        """
        Record that ``order_id`` entered the cache of ``app_key``.

        Raises:
            PersistenceError: The insert failed
        """
        try:
            async with get_db(self._session_factory) as session:
                session.add(CacheIndexEntry(order_id=order_id, app_key=app_key))
        except SQLAlchemyError as e:
            logger.error("Unable to append cache index", order_id=order_id, app_key=app_key, error=str(e))
            raise PersistenceError(f"Unable to index order {order_id}") from e
        logger.debug("Order id added to cache index", order_id=order_id, app_key=app_key)

    async def load_cache_index(self, app_key: str, limit: int) -> List[int]:
        """
        Most recently indexed identifiers for ``app_key``, oldest first.

        An identifier indexed more than once counts at its latest position.

        Args:
            app_key: Application key partition
            limit: Maximum number of identifiers (the cache capacity)

        Raises:
            EmptyCacheIndexError: The index holds no rows for ``app_key``
            PersistenceError: The query failed
        """
        position = func.max(CacheIndexEntry.id).label("position")
        query = (
            select(CacheIndexEntry.order_id, position)
            .where(CacheIndexEntry.app_key == app_key)
            .group_by(CacheIndexEntry.order_id)
            .order_by(position.desc())
            .limit(limit)
        )
        try:
            async with get_db(self._session_factory) as session:
                result = await session.execute(query)
                newest_first = [row.order_id for row in result]
        except SQLAlchemyError as e:
            logger.error("Unable to load cache index", app_key=app_key, error=str(e))
            raise PersistenceError(f"Unable to load cache index for {app_key!r}") from e

        if not newest_first:
            raise EmptyCacheIndexError(app_key)
        newest_first.reverse()
        return newest_first

    async def clear_cache_index(self, app_key: str) -> int:
        """
        Delete every index row of ``app_key``. Aggregate tables are untouched.

        Returns:
            Number of deleted rows
        """
        try:
            async with get_db(self._session_factory) as session:
                result = await session.execute(
                    delete(CacheIndexEntry).where(CacheIndexEntry.app_key == app_key)
                )
                deleted = result.rowcount
        except SQLAlchemyError as e:
            logger.error("Unable to clear cache index", app_key=app_key, error=str(e))
            raise PersistenceError(f"Unable to clear cache index for {app_key!r}") from e
        logger.info("Cache index cleared", app_key=app_key, deleted=deleted)
        return deleted

    async def remove_from_cache_index(self, order_ids: Sequence[int], app_key: str) -> int:
        """Delete the index rows of ``order_ids`` under ``app_key``"""
        if not order_ids:
            return 0
        try:
            async with get_db(self._session_factory) as session:
                result = await session.execute(
                    delete(CacheIndexEntry).where(
                        CacheIndexEntry.app_key == app_key,
                        CacheIndexEntry.order_id.in_(list(order_ids)),
                    )
                )
                deleted = result.rowcount
        except SQLAlchemyError as e:
            raise PersistenceError(f"Unable to prune cache index for {app_key!r}") from e
        logger.info("Cache index pruned", app_key=app_key, order_ids=list(order_ids), deleted=deleted)
        return deleted
