"""
Serving Module
"""
from .cache import OrderCache
from .query import OrderQueryService, parse_order_id, render_order
from .recovery import RecoveryReport, recover_cache

__all__ = [
    "OrderCache",
    "OrderQueryService",
    "RecoveryReport",
    "parse_order_id",
    "recover_cache",
    "render_order",
]
