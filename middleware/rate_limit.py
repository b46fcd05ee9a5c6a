"""
Rate Limiting

Protects checkout and cart writes from abuse using Redis-based counters.

Features:
- Per-session rate limiting for checkout session creation
- Per-session rate limiting for cart updates
- Configurable limits via environment variables
- Automatic expiry using Redis TTL

Configuration:
- MAX_CHECKOUTS_PER_SESSION_PER_HOUR: Maximum checkout attempts per session per hour
- MAX_CART_UPDATES_PER_MINUTE: Maximum cart writes per session per minute
"""

import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError

import config
from enums.rate_limit_operation import RateLimitOperation
from exceptions.base import RateLimitException

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Redis-based rate limiter for specific operations.

    Usage:
        limiter = RateLimiter(redis)
        await limiter.enforce(RateLimitOperation.CHECKOUT_CREATE, session_key)
    """

    def __init__(self, redis: Redis):
        self.redis = redis

    @staticmethod
    def key(operation: RateLimitOperation | str, identifier: str | int) -> str:
        return f"rate_limit:{getattr(operation, 'value', operation)}:{identifier}"

    async def is_rate_limited(
        self,
        operation: RateLimitOperation | str,
        identifier: str | int,
        max_count: int,
        window_seconds: int
    ) -> tuple[bool, int, int]:
        """
        Count one attempt and check it against the limit.

        Returns:
            Tuple of (is_limited, current_count, remaining_count)

        Example:
            >>> is_limited, current, remaining = await limiter.is_rate_limited(
            ...     RateLimitOperation.CHECKOUT_CREATE, "f3a1...", max_count=10, window_seconds=3600
            ... )
        """
        key = self.key(operation, identifier)

        try:
            # Open the window with its TTL before counting, so a counter never outlives it
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.set(key, 0, ex=window_seconds, nx=True)
                pipe.incr(key)
                _, current_count = await pipe.execute()

            is_limited = current_count > max_count
            remaining = max(0, max_count - current_count)

            if is_limited:
                ttl = await self.redis.ttl(key)
                logger.warning(
                    f"Rate limit exceeded: identifier={str(identifier)[:8]}..., operation={key.split(':')[1]}, "
                    f"count={current_count}/{max_count}, resets_in={ttl}s"
                )

            return is_limited, current_count, remaining

        except RedisError as e:
            # If Redis fails, don't block the operation (fail open)
            logger.error(f"Rate limiter error: {e}")
            return False, 0, max_count

    async def enforce(self, operation: RateLimitOperation, identifier: str | int) -> None:
        """
        Raise RateLimitException when the identifier is over the configured limit.
        """
        match operation:
            case RateLimitOperation.CHECKOUT_CREATE:
                max_count, window_seconds = config.MAX_CHECKOUTS_PER_SESSION_PER_HOUR, 3600
            case RateLimitOperation.CART_UPDATE:
                max_count, window_seconds = config.MAX_CART_UPDATES_PER_MINUTE, 60

        is_limited, current, _ = await self.is_rate_limited(operation, identifier, max_count, window_seconds)
        if is_limited:
            retry_after = await self.get_remaining_time(operation, identifier)
            raise RateLimitException(
                f"Too many requests. Try again in {max(1, retry_after // 60)} minutes.",
                details={'operation': operation.value, 'retry_after': retry_after}
            )

    async def reset_limit(self, operation: RateLimitOperation | str, identifier: str | int):
        key = self.key(operation, identifier)
        await self.redis.delete(key)
        logger.info(f"Rate limit reset: operation={key.split(':')[1]}")

    async def get_remaining_time(self, operation: RateLimitOperation | str, identifier: str | int) -> int:
        """
        Returns:
            Remaining seconds until reset (0 if no window is open)
        """
        ttl = await self.redis.ttl(self.key(operation, identifier))
        return ttl if ttl > 0 else 0
