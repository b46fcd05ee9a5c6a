"""
Unit Tests: RateLimiter (Redis counters, fakeredis backend)
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from enums.rate_limit_operation import RateLimitOperation
from exceptions.base import RateLimitException
from middleware.rate_limit import RateLimiter

SESSION = "3f2a9c0d1e7b4a6f"


@pytest.fixture
def limiter(redis_client):
    return RateLimiter(redis_client)


class TestIsRateLimited:

    @pytest.mark.asyncio
    async def test_counts_up_to_limit(self, limiter):
        results = [await limiter.is_rate_limited("op", SESSION, max_count=3, window_seconds=60) for _ in range(4)]

        assert [limited for limited, _, _ in results] == [False, False, False, True]
        assert [current for _, current, _ in results] == [1, 2, 3, 4]
        assert [remaining for _, _, remaining in results] == [2, 1, 0, 0]

    @pytest.mark.asyncio
    async def test_window_set_on_first_hit(self, limiter, redis_client):
        await limiter.is_rate_limited("op", SESSION, max_count=3, window_seconds=60)

        ttl = await redis_client.ttl(RateLimiter.key("op", SESSION))
        assert 0 < ttl <= 60

    @pytest.mark.asyncio
    async def test_later_hits_keep_the_window(self, limiter, redis_client):
        key = RateLimiter.key("op", SESSION)
        await limiter.is_rate_limited("op", SESSION, max_count=3, window_seconds=60)
        # half the window has passed
        await redis_client.expire(key, 30)

        _, current, _ = await limiter.is_rate_limited("op", SESSION, max_count=3, window_seconds=60)

        assert current == 2
        assert 0 < await redis_client.ttl(key) <= 30

    @pytest.mark.asyncio
    async def test_counter_never_stored_without_ttl(self, limiter, redis_client):
        for _ in range(5):
            await limiter.is_rate_limited("op", SESSION, max_count=3, window_seconds=60)

        assert await redis_client.ttl(RateLimiter.key("op", SESSION)) > 0

    @pytest.mark.asyncio
    async def test_identifiers_are_independent(self, limiter):
        await limiter.is_rate_limited("op", "a", max_count=1, window_seconds=60)
        limited, _, _ = await limiter.is_rate_limited("op", "b", max_count=1, window_seconds=60)
        assert limited is False

    @pytest.mark.asyncio
    async def test_fails_open_when_redis_down(self):
        pipe = MagicMock()
        pipe.__aenter__.return_value = pipe
        pipe.execute = AsyncMock(side_effect=RedisConnectionError("down"))
        redis = MagicMock()
        redis.pipeline.return_value = pipe

        limited, current, remaining = await RateLimiter(redis).is_rate_limited("op", SESSION, 3, 60)

        assert (limited, current, remaining) == (False, 0, 3)


class TestEnforce:

    @pytest.mark.asyncio
    async def test_checkout_limit(self, limiter):
        # conftest: MAX_CHECKOUTS_PER_SESSION_PER_HOUR = 10
        for _ in range(10):
            await limiter.enforce(RateLimitOperation.CHECKOUT_CREATE, SESSION)

        with pytest.raises(RateLimitException) as exc_info:
            await limiter.enforce(RateLimitOperation.CHECKOUT_CREATE, SESSION)

        assert exc_info.value.status_code == 429
        assert exc_info.value.kind == "rate_limited"
        assert exc_info.value.details["operation"] == "checkout_create"
        assert 0 < exc_info.value.details["retry_after"] <= 3600

    @pytest.mark.asyncio
    async def test_operations_have_separate_counters(self, limiter):
        for _ in range(10):
            await limiter.enforce(RateLimitOperation.CHECKOUT_CREATE, SESSION)

        await limiter.enforce(RateLimitOperation.CART_UPDATE, SESSION)

    @pytest.mark.asyncio
    async def test_reset(self, limiter):
        for _ in range(10):
            await limiter.enforce(RateLimitOperation.CHECKOUT_CREATE, SESSION)

        await limiter.reset_limit(RateLimitOperation.CHECKOUT_CREATE, SESSION)

        await limiter.enforce(RateLimitOperation.CHECKOUT_CREATE, SESSION)
        assert await limiter.get_remaining_time(RateLimitOperation.CHECKOUT_CREATE, SESSION) > 0

    @pytest.mark.asyncio
    async def test_remaining_time_without_window(self, limiter):
        assert await limiter.get_remaining_time(RateLimitOperation.CART_UPDATE, "fresh") == 0
