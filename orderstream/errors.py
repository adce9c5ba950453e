"""
Error Taxonomy

Store operations raise these instead of driver exceptions, so callers can tell
a missing aggregate from a transient failure. Cache operations never raise.
"""

from typing import Optional


class OrderStreamError(Exception):
    """Base class for all order stream errors"""


# =============================================================================
# INGESTION
# =============================================================================

class DecodeError(OrderStreamError):
    """Inbound payload is not a valid order document"""


# =============================================================================
# STORE
# =============================================================================

class PersistenceError(OrderStreamError):
    """A store transaction or query failed and was rolled back"""


class DuplicateOrderError(PersistenceError):
    """An order with the same UID is already persisted"""

    def __init__(self, order_uid: str, order_id: int):
        super().__init__(f"Order {order_uid!r} already persisted as {order_id}")
        self.order_uid = order_uid
        self.order_id = order_id


class NotFoundError(OrderStreamError):
    """Requested data does not exist"""


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: int):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class EmptyCacheIndexError(NotFoundError):
    """The persisted cache index holds no rows for the application key"""

    def __init__(self, app_key: str):
        super().__init__(f"Cache index is empty for app key {app_key!r}")
        self.app_key = app_key


class DependentRowError(OrderStreamError):
    """
    The order row exists but one of its owned rows cannot be loaded.

    Raised instead of returning a partially populated aggregate.
    """

    def __init__(self, order_id: int, kind: str, row_id: Optional[int] = None):
        detail = f"{kind} row {row_id}" if row_id is not None else f"{kind} rows"
        super().__init__(f"Order {order_id}: missing {detail}")
        self.order_id = order_id
        self.kind = kind
        self.row_id = row_id


# =============================================================================
# READ BOUNDARY
# =============================================================================

class InvalidIdentifierError(OrderStreamError):
    def __init__(self, raw: str):
        super().__init__(f"Invalid order identifier: {raw!r}")
        self.raw = raw


class SerializationError(OrderStreamError):
    """An order could not be rendered as a response document"""
