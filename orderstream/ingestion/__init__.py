"""
Data Ingestion Module
"""
from .publisher import OrderPublisher, sample_order
from .stream_consumer import OrderStreamConsumer, decode_order

__all__ = [
    "OrderPublisher",
    "OrderStreamConsumer",
    "decode_order",
    "sample_order",
]
