"""FastAPI dependencies."""

from collections.abc import AsyncGenerator

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.services.geolocation import GeolocationService
from apps.api.services.mailer import Mailer
from core.db import get_db as _get_db
from core.redis import get_redis as _get_redis


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async for session in _get_db():
        yield session


async def get_redis_client() -> redis.Redis:
    """Get Redis client dependency."""
    return await _get_redis()


async def get_mailer() -> AsyncGenerator[Mailer, None]:
    """Mailer with its own HTTP client, closed after the request."""
    mailer = Mailer()
    try:
        yield mailer
    finally:
        await mailer.close()


async def get_geolocation() -> AsyncGenerator[GeolocationService, None]:
    service = GeolocationService()
    try:
        yield service
    finally:
        await service.close()
