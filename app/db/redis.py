# app/db/redis.py
import redis
import redis.asyncio as aioredis
from app.core.config import settings


def get_redis_client():
    """
    Creates and returns a new Redis client instance for publishing.
    """
    return redis.from_url(settings.REDIS_URL, decode_responses=True)


def get_async_redis_client():
    """
    Creates an asyncio Redis client. Each WebSocket subscription gets its own
    so that closing one pub/sub connection does not affect the others.
    """
    return aioredis.from_url(settings.REDIS_URL, decode_responses=True)


# Shared instance used by the change feed publisher.
# redis-py connects lazily, so importing this does not need a running server.
redis_client = get_redis_client()
