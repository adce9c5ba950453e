"""
In-Memory Order Cache

Bounded mapping from store identifier to order aggregate with insertion-order
eviction. Overwriting a key keeps its queue position, and reads never reorder
the queue: the persisted cache index replays into exactly this order.

All state sits behind one lock, so the cache can be shared between the stream
consumer, request handlers and worker threads.
"""

import threading
from collections import deque
from typing import Deque, Dict, Iterable, List, Mapping, Optional, Tuple

import structlog
from prometheus_client import Counter, Gauge

from orderstream.schemas import Order

logger = structlog.get_logger(__name__)


CACHE_SIZE = Gauge(
    "orderstream_cache_entries",
    "Number of orders held in the in-memory cache",
)

CACHE_EVICTIONS = Counter(
    "orderstream_cache_evictions_total",
    "Orders evicted from the in-memory cache",
)


class OrderCache:
    """
    Bounded insertion-ordered cache of order aggregates.

    Example:
        cache = OrderCache(capacity=10)
        cache.put(42, order)
        order, hit = cache.get(42)
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("Cache capacity must be positive")
        self._capacity = capacity
        self._entries: Dict[int, Order] = {}
        self._queue: Deque[int] = deque()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def put(self, order_id: int, order: Order) -> None:
        """
        Insert or overwrite the entry for ``order_id``.

        A new key evicts the oldest inserted entry when the cache is full and
        joins the tail of the queue. An existing key keeps its position.
        """
        with self._lock:
            if order_id not in self._entries:
                if len(self._entries) >= self._capacity:
                    victim = self._queue.popleft()
                    del self._entries[victim]
                    CACHE_EVICTIONS.inc()
                    logger.debug("Order evicted from cache", order_id=victim)
                self._queue.append(order_id)

            self._entries[order_id] = order
            CACHE_SIZE.set(len(self._entries))

    def get(self, order_id: int) -> Tuple[Optional[Order], bool]:
        """Return the cached order and a hit flag"""
        with self._lock:
            order = self._entries.get(order_id)
        return order, order is not None

    def load(self, entries: Mapping[int, Order], ordered_ids: Iterable[int]) -> None:
        """
        Replace the cache contents with a recovery payload.

        Args:
            entries: Recovered aggregates by identifier
            ordered_ids: Queue order, oldest first. Identifiers without an
                entry are skipped; only the newest ``capacity`` are kept.
        """
        queue: List[int] = []
        seen = set()
        for order_id in ordered_ids:
            if order_id in entries and order_id not in seen:
                seen.add(order_id)
                queue.append(order_id)
        queue = queue[-self._capacity:]

        with self._lock:
            self._queue = deque(queue)
            self._entries = {order_id: entries[order_id] for order_id in queue}
            CACHE_SIZE.set(len(self._entries))

        logger.info("Cache loaded", entries=len(queue), capacity=self._capacity)

    def queue_snapshot(self) -> List[int]:
        """Identifiers in eviction order, oldest first"""
        with self._lock:
            return list(self._queue)

    def __contains__(self, order_id: int) -> bool:
        with self._lock:
            return order_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
