"""
Notification broker connection.

Freight events are published on a Redis channel; the engine only needs a
client, a reachability probe for /health, and a clean shutdown.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from backend.app.core.config import settings


logger = logging.getLogger(__name__)

redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def ping_redis() -> bool:
    """Whether the broker answers; an outage only degrades notifications."""
    try:
        return bool(await redis_client.ping())
    except (RedisError, OSError) as exc:
        logger.warning("Notification broker unreachable", extra={"error": str(exc)})
        return False


async def close_redis() -> None:
    await redis_client.aclose()
