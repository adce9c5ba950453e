"""
Database Models - Normalized Order Schema

Tables:
- orders: order root row, referencing its payment and delivery
- payments, deliveries: owned one-to-one by an order
- items: order lines, immutable once written
- order_items: ordered junction between orders and items
- cache_index: append-only log of cached order ids per application key

Integer identifiers are store-assigned and never reused (AUTOINCREMENT on
SQLite, sequences on PostgreSQL).
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLite only autoincrements INTEGER PRIMARY KEY columns
Identifier = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


class PaymentRecord(Base):
    """Payment row owned by exactly one order"""
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Identifier, primary_key=True, autoincrement=True)
    transaction: Mapped[str] = mapped_column(String(255), nullable=False)
    request_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    currency: Mapped[str] = mapped_column(String(16), nullable=False)
    provider: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    payment_dt: Mapped[int] = mapped_column(BigInteger, nullable=False)
    bank: Mapped[str] = mapped_column(String(255), nullable=False)
    delivery_cost: Mapped[int] = mapped_column(BigInteger, nullable=False)
    goods_total: Mapped[int] = mapped_column(BigInteger, nullable=False)
    custom_fee: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    __table_args__ = {"sqlite_autoincrement": True}


class DeliveryRecord(Base):
    """Delivery row owned by exactly one order"""
    __tablename__ = "deliveries"

    id: Mapped[int] = mapped_column(Identifier, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(64), nullable=False)
    zip: Mapped[str] = mapped_column(String(32), nullable=False)
    city: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    region: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    __table_args__ = {"sqlite_autoincrement": True}


class ItemRecord(Base):
    """Order line"""
    __tablename__ = "items"

    id: Mapped[int] = mapped_column(Identifier, primary_key=True, autoincrement=True)
    chrt_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    track_number: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    rid: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    sale: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    size: Mapped[str] = mapped_column(String(64), nullable=False)
    total_price: Mapped[int] = mapped_column(BigInteger, nullable=False)
    nm_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    brand: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = {"sqlite_autoincrement": True}


class OrderRecord(Base):
    """
    Order root row.

    ``order_uid`` is unique: a redelivered document cannot create a second
    aggregate for the same external order.
    """
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Identifier, primary_key=True, autoincrement=True)
    order_uid: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    track_number: Mapped[str] = mapped_column(String(255), nullable=False)
    entry: Mapped[str] = mapped_column(String(64), nullable=False)
    delivery_id: Mapped[int] = mapped_column(
        Identifier, ForeignKey("deliveries.id"), nullable=False
    )
    payment_id: Mapped[int] = mapped_column(
        Identifier, ForeignKey("payments.id"), nullable=False
    )
    locale: Mapped[str] = mapped_column(String(16), nullable=False)
    internal_signature: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    customer_id: Mapped[str] = mapped_column(String(255), nullable=False)
    delivery_service: Mapped[str] = mapped_column(String(255), nullable=False)
    shardkey: Mapped[str] = mapped_column(String(64), nullable=False)
    sm_id: Mapped[int] = mapped_column(Integer, nullable=False)
    date_created: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    oof_shard: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = {"sqlite_autoincrement": True}


class OrderItemLink(Base):
    """Junction row; ``position`` preserves the document's item order"""
    __tablename__ = "order_items"

    order_id: Mapped[int] = mapped_column(
        Identifier, ForeignKey("orders.id"), primary_key=True
    )
    item_id: Mapped[int] = mapped_column(
        Identifier, ForeignKey("items.id"), primary_key=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_order_items_order_position", "order_id", "position"),
    )


class CacheIndexEntry(Base):
    """
    Append-only record of an order id entering the cache.

    The row id orders entries chronologically; it is the recovery queue order.
    """
    __tablename__ = "cache_index"

    id: Mapped[int] = mapped_column(Identifier, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(Identifier, ForeignKey("orders.id"), nullable=False)
    app_key: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_cache_index_app_key_id", "app_key", "id"),
        {"sqlite_autoincrement": True},
    )
