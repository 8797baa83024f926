"""Shared infrastructure for the Matcha API: settings, database, Redis, auth and security."""

from core.config import settings
from core.db import AsyncSessionLocal, Base, engine, get_db
from core.redis import acquire_rate_limit, close_redis, get_redis

__all__ = [
    "settings",
    "Base",
    "AsyncSessionLocal",
    "engine",
    "get_db",
    "get_redis",
    "close_redis",
    "acquire_rate_limit",
]
