"""
Order Aggregate Models

The order document as it travels on the stream and leaves the read boundary.
Field names follow the wire format of the upstream producer.
"""

from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Delivery(BaseModel):
    """Recipient and shipping address"""
    model_config = ConfigDict(frozen=True)

    name: str
    phone: str
    zip: str
    city: str
    address: str
    region: str
    email: str


class Payment(BaseModel):
    """Payment attached to an order"""
    model_config = ConfigDict(frozen=True)

    transaction: str
    request_id: str = ""
    currency: str
    provider: str
    amount: int
    payment_dt: int
    bank: str
    delivery_cost: int
    goods_total: int
    custom_fee: int = 0


class Item(BaseModel):
    """Single order line"""
    model_config = ConfigDict(frozen=True)

    chrt_id: int
    track_number: str
    price: int
    rid: str
    name: str
    sale: int = 0
    size: str
    total_price: int
    nm_id: int
    brand: str
    status: int


class Order(BaseModel):
    """
    Order aggregate: the order with its delivery, payment and items.

    Instances are immutable so a cached aggregate can be shared between the
    consumer and concurrent readers.
    """
    model_config = ConfigDict(frozen=True)

    order_uid: str = Field(min_length=1)
    track_number: str
    entry: str
    delivery: Delivery
    payment: Payment
    items: List[Item] = Field(default_factory=list)
    locale: str
    internal_signature: str = ""
    customer_id: str
    delivery_service: str
    shardkey: str
    sm_id: int
    date_created: datetime
    oof_shard: str

    @field_validator("date_created")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Naive timestamps are UTC"""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v
