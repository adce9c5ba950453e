"""
Database Module
"""
from .connection import (
    check_database_health,
    close_database,
    create_engine,
    create_session_factory,
    get_db,
    init_database,
)
from .models import Base
from .store import OrderStore

__all__ = [
    "check_database_health",
    "close_database",
    "create_engine",
    "create_session_factory",
    "get_db",
    "init_database",
    "Base",
    "OrderStore",
]
