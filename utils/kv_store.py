"""
Key-value store used for session-scoped documents (carts).

Thin async wrapper around a redis.asyncio client exposing only the four
operations the cart needs. The client is created and closed by the
application lifespan (app.py) and injected here, so nothing in the
services holds a process-wide connection.
"""

import logging

from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class KeyValueStore:

    def __init__(self, redis: Redis):
        self.redis = redis

    async def get(self, key: str) -> str | None:
        value = await self.redis.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self.redis.set(key, value, ex=ttl_seconds)

    async def delete(self, key: str) -> bool:
        return bool(await self.redis.delete(key))

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Reset the TTL of an existing key. Returns False when the key is gone."""
        return bool(await self.redis.expire(key, ttl_seconds))

    async def ttl(self, key: str) -> int:
        return await self.redis.ttl(key)
