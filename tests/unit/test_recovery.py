"""
Unit Tests - Cache Recovery
"""
import pytest
from sqlalchemy import delete
from unittest.mock import AsyncMock, MagicMock

from orderstream.database.models import PaymentRecord
from orderstream.errors import PersistenceError
from orderstream.serving.cache import OrderCache
from orderstream.serving.recovery import recover_cache


async def _ingest(store, make_order, count, app_key="WB-1"):
    ids = []
    for i in range(count):
        order_id = await store.write_order(make_order(f"uid-{i}"))
        await store.append_cache_index(order_id, app_key)
        ids.append(order_id)
    return ids


class TestRecoverCache:
    """Tests for recover_cache"""

    async def test_next_victim_is_oldest_indexed(self, store, make_order):
        ids = await _ingest(store, make_order, 3)
        cache = OrderCache(capacity=3)

        report = await recover_cache(store, cache, "WB-1")
        cache.put(9999, make_order("late"))

        assert report.recovered == ids
        assert ids[0] not in cache
        assert cache.queue_snapshot() == ids[1:] + [9999]

    async def test_recovers_full_aggregates(self, store, make_order):
        ids = await _ingest(store, make_order, 2)
        cache = OrderCache(capacity=5)

        await recover_cache(store, cache, "WB-1")

        for order_id in ids:
            order, hit = cache.get(order_id)
            assert hit
            assert order == await store.read_order(order_id)

    async def test_only_capacity_most_recent(self, store, make_order):
        ids = await _ingest(store, make_order, 5)
        cache = OrderCache(capacity=2)

        await recover_cache(store, cache, "WB-1")

        assert cache.queue_snapshot() == ids[-2:]

    async def test_empty_index(self, store):
        cache = OrderCache(capacity=3)

        report = await recover_cache(store, cache, "WB-1")

        assert report.is_empty
        assert len(cache) == 0

    async def test_other_app_key_not_recovered(self, store, make_order):
        await _ingest(store, make_order, 2, app_key="WB-2")
        cache = OrderCache(capacity=3)

        report = await recover_cache(store, cache, "WB-1")

        assert report.is_empty

    async def test_unrecoverable_order_skipped_and_pruned(self, store, make_order, session_factory):
        ids = await _ingest(store, make_order, 3)
        broken = await store.write_order(make_order("broken"))
        await store.append_cache_index(broken, "WB-1")
        async with session_factory() as session:
            broken_payment = (await store.read_order(broken)).payment
            await session.execute(
                delete(PaymentRecord).where(PaymentRecord.transaction == broken_payment.transaction)
            )
            await session.commit()
        cache = OrderCache(capacity=5)

        report = await recover_cache(store, cache, "WB-1")

        assert report.recovered == ids
        assert report.skipped == [broken]
        assert report.pruned == 1
        assert broken not in cache
        assert await store.load_cache_index("WB-1", 10) == ids

    async def test_unrecoverable_order_kept_in_index_without_pruning(self, store, make_order):
        ids = await _ingest(store, make_order, 2)
        await store.append_cache_index(424242, "WB-1")
        cache = OrderCache(capacity=5)

        report = await recover_cache(store, cache, "WB-1", prune_unrecoverable=False)

        assert report.skipped == [424242]
        assert report.pruned == 0
        assert cache.queue_snapshot() == ids
        assert await store.load_cache_index("WB-1", 10) == ids + [424242]

    async def test_index_query_failure_propagates(self):
        store = MagicMock()
        store.load_cache_index = AsyncMock(side_effect=PersistenceError("connection refused"))

        with pytest.raises(PersistenceError):
            await recover_cache(store, OrderCache(capacity=2), "WB-1")

    async def test_read_failure_skipped_but_kept_in_index(self, store, make_order, monkeypatch):
        ids = await _ingest(store, make_order, 3)
        read_order = store.read_order

        async def flaky_read(order_id):
            if order_id == ids[1]:
                raise PersistenceError("connection reset")
            return await read_order(order_id)

        monkeypatch.setattr(store, "read_order", flaky_read)
        cache = OrderCache(capacity=5)

        report = await recover_cache(store, cache, "WB-1")

        assert report.recovered == [ids[0], ids[2]]
        assert report.failed == [ids[1]]
        assert report.pruned == 0
        assert cache.queue_snapshot() == [ids[0], ids[2]]
        assert await store.load_cache_index("WB-1", 10) == ids
