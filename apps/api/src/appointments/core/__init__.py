"""
Core module - Configuration, database, cache, email, and utilities.
"""

from appointments.core.config import get_settings, settings
from appointments.core.database import Base, close_db, get_db, init_db
from appointments.core.redis import close_redis, get_redis, init_redis

__all__ = [
    # Config
    "settings",
    "get_settings",
    # Database
    "Base",
    "get_db",
    "init_db",
    "close_db",
    # Redis
    "get_redis",
    "init_redis",
    "close_redis",
]
