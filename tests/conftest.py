"""
Test Suite Configuration
"""
from datetime import datetime, timezone
from typing import AsyncGenerator, Callable

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from orderstream.config import Settings, StreamSettings
from orderstream.database.connection import create_session_factory
from orderstream.database.models import Base
from orderstream.database.store import OrderStore
from orderstream.schemas import Delivery, Item, Order, Payment


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(app_env="testing")


@pytest.fixture
def stream_settings() -> StreamSettings:
    return StreamSettings(topic="orders", durable_name="test-durable", redelivery_delay_ms=0)


@pytest.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """SQLite database in a temp file, schema created"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(test_engine)


@pytest.fixture
def store(session_factory) -> OrderStore:
    return OrderStore(session_factory)


@pytest.fixture
def count_rows(session_factory) -> Callable:
    """Count the rows of a model's table"""
    async def _count(model) -> int:
        async with session_factory() as session:
            result = await session.execute(select(func.count()).select_from(model))
            return result.scalar_one()
    return _count


@pytest.fixture
def make_order() -> Callable[..., Order]:
    """Build an order document; ``item_count`` lines with distinct ids"""
    def _make(order_uid: str = "b563feb7b2b84b6test", item_count: int = 2) -> Order:
        return Order(
            order_uid=order_uid,
            track_number="WBILMTESTTRACK",
            entry="WBIL",
            delivery=Delivery(
                name="Test Testov",
                phone="+9720000000",
                zip="2639809",
                city="Kiryat Mozkin",
                address="Ploshad Mira 15",
                region="Kraiot",
                email="test@gmail.com",
            ),
            payment=Payment(
                transaction=order_uid,
                request_id="",
                currency="USD",
                provider="wbpay",
                amount=1817,
                payment_dt=1637907727,
                bank="alpha",
                delivery_cost=1500,
                goods_total=317,
                custom_fee=0,
            ),
            items=[
                Item(
                    chrt_id=9934930 + i,
                    track_number="WBILMTESTTRACK",
                    price=453,
                    rid=f"ab4219087a764ae0btest-{i}",
                    name=f"Mascaras {i}",
                    sale=30,
                    size="0",
                    total_price=317,
                    nm_id=2389212 + i,
                    brand="Vivienne Sabo",
                    status=202,
                )
                for i in range(item_count)
            ],
            locale="en",
            internal_signature="",
            customer_id="test",
            delivery_service="meest",
            shardkey="9",
            sm_id=99,
            date_created=datetime(2021, 11, 26, 6, 22, 19, tzinfo=timezone.utc),
            oof_shard="1",
        )
    return _make


@pytest.fixture
def sample_order(make_order) -> Order:
    return make_order()
