"""
Cache Recovery

Rebuilds the in-memory cache from the persisted cache index at startup, before
reads are served or new messages consumed.
"""

from dataclasses import dataclass, field
from typing import Dict, List

import structlog

from orderstream.database.store import OrderStore
from orderstream.errors import DependentRowError, EmptyCacheIndexError, NotFoundError, PersistenceError
from orderstream.schemas import Order
from orderstream.serving.cache import OrderCache

logger = structlog.get_logger(__name__)


@dataclass
class RecoveryReport:
    """Outcome of one recovery pass"""
    recovered: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    pruned: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.recovered and not self.skipped and not self.failed


async def recover_cache(
    store: OrderStore,
    cache: OrderCache,
    app_key: str,
    prune_unrecoverable: bool = True,
) -> RecoveryReport:
    """
    Load the newest ``cache.capacity`` indexed orders into ``cache``.

    Orders that cannot be read are logged and skipped rather than aborting the
    pass. With ``prune_unrecoverable`` the index rows of orders that are gone
    or incomplete are deleted. Orders whose read failed for any other reason
    stay indexed.

    Args:
        store: Order store
        cache: Cache to load
        app_key: Application key partition of the index
        prune_unrecoverable: Delete index rows of skipped orders

    Returns:
        RecoveryReport

    Raises:
        PersistenceError: The index itself could not be read or pruned
    """
    report = RecoveryReport()

    try:
        order_ids = await store.load_cache_index(app_key, cache.capacity)
    except EmptyCacheIndexError:
        logger.info("Nothing to recover", app_key=app_key)
        return report

    entries: Dict[int, Order] = {}
    for order_id in order_ids:
        try:
            entries[order_id] = await store.read_order(order_id)
        except (NotFoundError, DependentRowError) as e:
            logger.warning("Skipping unrecoverable order", order_id=order_id, error=str(e))
            report.skipped.append(order_id)
            continue
        except PersistenceError as e:
            # Transient: kept in the index for the next restart
            logger.error("Unable to read indexed order", order_id=order_id, error=str(e))
            report.failed.append(order_id)
            continue
        report.recovered.append(order_id)

    cache.load(entries, report.recovered)

    if report.skipped and prune_unrecoverable:
        report.pruned = await store.remove_from_cache_index(report.skipped, app_key)

    logger.info(
        "Cache recovered",
        app_key=app_key,
        recovered=len(report.recovered),
        skipped=len(report.skipped),
        failed=len(report.failed),
        pruned=report.pruned,
    )
    return report
