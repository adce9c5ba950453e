"""
Order Query Service

Read boundary: cache first, store on miss. The HTTP layer maps the raised
errors to status codes.
"""

from typing import Any, Dict

import structlog
from prometheus_client import Counter
from pydantic_core import PydanticSerializationError

from orderstream.database.store import OrderStore
from orderstream.errors import InvalidIdentifierError, SerializationError
from orderstream.schemas import Order
from orderstream.serving.cache import OrderCache

logger = structlog.get_logger(__name__)


CACHE_LOOKUPS = Counter(
    "orderstream_cache_lookups_total",
    "Order lookups by cache outcome",
    ["result"],
)


def parse_order_id(raw: str) -> int:
    """
    Parse an order identifier from request input.

    Raises:
        InvalidIdentifierError: ``raw`` is not a positive integer
    """
    try:
        order_id = int(raw.strip())
    except (TypeError, ValueError, AttributeError):
        raise InvalidIdentifierError(raw)
    if order_id < 1:
        raise InvalidIdentifierError(raw)
    return order_id


def render_order(order: Order) -> Dict[str, Any]:
    """
    Render an order as a JSON-compatible document.

    Raises:
        SerializationError: The order could not be serialized
    """
    try:
        return order.model_dump(mode="json")
    except (PydanticSerializationError, ValueError, TypeError) as e:
        raise SerializationError(str(e)) from e


class OrderQueryService:
    """
    Looks up orders by identifier.

    A miss falls back to the store and, with ``populate_on_miss``, puts the
    result into the cache. Read-through entries are not added to the
    persisted index.
    """

    def __init__(self, cache: OrderCache, store: OrderStore, populate_on_miss: bool = True):
        self._cache = cache
        self._store = store
        self._populate_on_miss = populate_on_miss

    async def get_order(self, order_id: int) -> Order:
        """
        Raises:
            OrderNotFoundError: No such order
            DependentRowError: The order row exists but its aggregate is incomplete
            PersistenceError: The store query failed
        """
        order, hit = self._cache.get(order_id)
        if hit:
            CACHE_LOOKUPS.labels(result="hit").inc()
            return order

        CACHE_LOOKUPS.labels(result="miss").inc()
        logger.debug("Cache miss, reading from store", order_id=order_id)
        order = await self._store.read_order(order_id)

        if self._populate_on_miss:
            self._cache.put(order_id, order)
        return order
