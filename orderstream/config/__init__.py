"""
Order Stream Cache
Configuration Module
"""
from .settings import (
    CacheSettings,
    DatabaseSettings,
    MonitoringSettings,
    Settings,
    StreamSettings,
    get_settings,
)

__all__ = [
    "CacheSettings",
    "DatabaseSettings",
    "MonitoringSettings",
    "Settings",
    "StreamSettings",
    "get_settings",
]
