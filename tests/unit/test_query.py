"""
Unit Tests - Order Query Service
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from orderstream.errors import (
    EmptyCacheIndexError,
    InvalidIdentifierError,
    OrderNotFoundError,
    SerializationError,
)
from orderstream.serving.cache import OrderCache
from orderstream.serving.query import OrderQueryService, parse_order_id, render_order


class TestOrderQueryService:
    """Tests for OrderQueryService"""

    async def test_hit_skips_store(self, sample_order):
        store = MagicMock()
        store.read_order = AsyncMock()
        cache = OrderCache(capacity=2)
        cache.put(1, sample_order)

        order = await OrderQueryService(cache, store).get_order(1)

        assert order == sample_order
        store.read_order.assert_not_awaited()

    async def test_miss_reads_through(self, store, sample_order):
        order_id = await store.write_order(sample_order)
        cache = OrderCache(capacity=2)
        service = OrderQueryService(cache, store)

        order = await service.get_order(order_id)

        assert order == await store.read_order(order_id)
        assert cache.get(order_id) == (order, True)

    async def test_miss_without_population(self, store, sample_order):
        order_id = await store.write_order(sample_order)
        cache = OrderCache(capacity=2)

        await OrderQueryService(cache, store, populate_on_miss=False).get_order(order_id)

        assert order_id not in cache

    async def test_read_through_is_not_indexed(self, store, sample_order):
        order_id = await store.write_order(sample_order)

        await OrderQueryService(OrderCache(capacity=2), store).get_order(order_id)

        assert await store.find_order_id(sample_order.order_uid) == order_id
        with pytest.raises(EmptyCacheIndexError):
            await store.load_cache_index("WB-1", 10)

    async def test_unknown_order(self, store):
        cache = OrderCache(capacity=2)

        with pytest.raises(OrderNotFoundError):
            await OrderQueryService(cache, store).get_order(77)

        assert len(cache) == 0


class TestParseOrderId:
    """Tests for identifier parsing"""

    @pytest.mark.parametrize("raw,expected", [("1", 1), ("42", 42), (" 7 ", 7)])
    def test_valid(self, raw, expected):
        assert parse_order_id(raw) == expected

    @pytest.mark.parametrize("raw", ["", "abc", "1.5", "0", "-3", "12abc"])
    def test_invalid(self, raw):
        with pytest.raises(InvalidIdentifierError):
            parse_order_id(raw)


class TestRenderOrder:
    """Tests for response rendering"""

    def test_document_shape(self, sample_order):
        document = render_order(sample_order)

        assert document["order_uid"] == sample_order.order_uid
        assert document["delivery"]["zip"] == "2639809"
        assert document["payment"]["amount"] == 1817
        assert len(document["items"]) == 2
        assert document["date_created"].startswith("2021-11-26T06:22:19")

    def test_serialization_failure(self):
        order = MagicMock()
        order.model_dump.side_effect = ValueError("circular reference")

        with pytest.raises(SerializationError):
            render_order(order)
