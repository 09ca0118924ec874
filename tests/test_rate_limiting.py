"""Tests for the Redis sliding-window rate limiter."""
import time
import pytest
from unittest.mock import AsyncMock, patch

from citydash.services.rate_limiting_service import (
    RateLimitingService,
    RateLimitRule,
    RateLimitType,
)


def mock_redis(current_requests=0, oldest_score=None):
    client = AsyncMock()
    client.zremrangebyscore = AsyncMock(return_value=0)
    client.zcard = AsyncMock(return_value=current_requests)
    client.zrange = AsyncMock(return_value=[("entry", oldest_score)] if oldest_score else [])
    client.zadd = AsyncMock(return_value=1)
    client.expire = AsyncMock(return_value=True)
    return client


@pytest.fixture
def limiter():
    return RateLimitingService({RateLimitType.LOGIN_ATTEMPT: RateLimitRule(requests=1, window=6)})


class TestRateLimitingService:
    @pytest.mark.asyncio
    async def test_first_request_allowed(self, limiter):
        client = mock_redis(current_requests=0)

        with patch("citydash.services.rate_limiting_service.get_redis_client", AsyncMock(return_value=client)):
            result = await limiter.hit(RateLimitType.LOGIN_ATTEMPT, "1.1.1.1")

        assert result.allowed is True
        assert result.remaining == 0
        client.zadd.assert_awaited_once()
        client.expire.assert_awaited_once_with("rate_limit:login_attempt:1.1.1.1", 6)

    @pytest.mark.asyncio
    async def test_second_request_in_window_denied(self, limiter):
        client = mock_redis(current_requests=1, oldest_score=time.time() - 2)

        with patch("citydash.services.rate_limiting_service.get_redis_client", AsyncMock(return_value=client)):
            result = await limiter.hit(RateLimitType.LOGIN_ATTEMPT, "1.1.1.1")

        assert result.allowed is False
        assert 1 <= result.retry_after <= 6
        client.zadd.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fails_open_when_redis_down(self, limiter):
        client = mock_redis()
        client.zremrangebyscore = AsyncMock(side_effect=ConnectionError("redis down"))

        with patch("citydash.services.rate_limiting_service.get_redis_client", AsyncMock(return_value=client)):
            result = await limiter.hit(RateLimitType.LOGIN_ATTEMPT, "1.1.1.1")

        assert result.allowed is True

    @pytest.mark.asyncio
    async def test_unconfigured_type_allowed(self, limiter):
        result = await limiter.hit(RateLimitType.PASSWORD_RESET, "1.1.1.1")

        assert result.allowed is True

    def test_default_login_rule(self):
        rule = RateLimitingService().rules[RateLimitType.LOGIN_ATTEMPT]

        assert (rule.requests, rule.window) == (1, 6)
