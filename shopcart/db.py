"""
Redis client for cart storage.

Provides a lazily created Upstash async Redis client. The client is only
built when a Redis-backed adapter actually needs it, so in-memory setups
never require credentials.
"""

from typing import Optional

from upstash_redis.asyncio import Redis as AsyncRedis

from shopcart.config import get_settings

_redis_client: Optional[AsyncRedis] = None


def get_redis() -> AsyncRedis:
    """
    Get async Upstash Redis client (singleton).

    Uses standard Upstash env var names:
    - UPSTASH_REDIS_REST_URL
    - UPSTASH_REDIS_REST_TOKEN
    """
    global _redis_client

    if _redis_client is None:
        settings = get_settings()
        if not settings.redis_configured:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _redis_client = AsyncRedis(url=settings.redis_url, token=settings.redis_token)

    return _redis_client


class RedisKeys:
    """Redis key prefixes for cart data."""

    CART = "cart:"  # cart:{session}:{instance}
    LOCK = "cart:lock:"  # cart:lock:{session}:{instance}
    EVENTS = "stream:cart:"  # stream:cart:{session}

    @staticmethod
    def cart_key(name: str) -> str:
        return f"{RedisKeys.CART}{name}"

    @staticmethod
    def lock_key(name: str) -> str:
        return f"{RedisKeys.LOCK}{name}"

    @staticmethod
    def event_stream_key(session_id: str) -> str:
        return f"{RedisKeys.EVENTS}{session_id}"
