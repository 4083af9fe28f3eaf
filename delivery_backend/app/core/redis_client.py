"""
Redis client initialization and connection management.

Redis backs the access-token blacklist.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError
from delivery_backend.app.core.config import settings

logger = logging.getLogger("delivery.redis")

# Create async Redis client
redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def ping_redis() -> bool:
    """
    Test Redis connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return bool(await redis_client.ping())
    except (RedisError, OSError) as e:
        logger.warning("Redis ping failed: %s", e)
        return False
