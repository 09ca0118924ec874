"""
Sliding-window rate limiting for authentication endpoints
Backed by Redis sorted sets; fails open when Redis is unavailable
"""

import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from ..config.auth_config import LOGIN_RATE_LIMIT_REQUESTS, LOGIN_RATE_LIMIT_WINDOW_SECONDS
from ..config.redis_config import get_redis_client, RedisKeyBuilder
from ..core.logging import get_logger

logger = get_logger(__name__)


class RateLimitType(str, Enum):
    """Rate limited authentication operations"""
    LOGIN_ATTEMPT = "login_attempt"
    PASSWORD_RESET = "password_reset"
    OTP_VERIFY = "otp_verify"
    MFA_CHALLENGE = "mfa_challenge"


@dataclass
class RateLimitRule:
    """Rate limiting rule configuration"""
    requests: int  # Number of requests allowed
    window: int    # Time window in seconds


class RateLimitResult:
    """Result of rate limit check"""
    def __init__(self, allowed: bool, remaining: int, retry_after: Optional[int] = None):
        self.allowed = allowed
        self.remaining = remaining
        self.retry_after = retry_after  # Seconds until next request allowed


class RateLimitingService:
    """Counts requests per identifier inside a sliding window"""

    def __init__(self, rules: Optional[Dict[RateLimitType, RateLimitRule]] = None):
        self.redis_client = None
        self.rules = rules or {
            RateLimitType.LOGIN_ATTEMPT: RateLimitRule(LOGIN_RATE_LIMIT_REQUESTS, LOGIN_RATE_LIMIT_WINDOW_SECONDS),
            RateLimitType.PASSWORD_RESET: RateLimitRule(3, 3600),
            RateLimitType.OTP_VERIFY: RateLimitRule(10, 900),
            RateLimitType.MFA_CHALLENGE: RateLimitRule(5, 600),
        }
        self.key_builder = RedisKeyBuilder()

    async def _get_redis(self):
        """Get Redis client with lazy initialization"""
        if self.redis_client is None:
            self.redis_client = await get_redis_client()
        return self.redis_client

    async def hit(self, limit_type: RateLimitType, identifier: str) -> RateLimitResult:
        """
        Record one request and decide whether it is within the limit

        Args:
            limit_type: Type of rate limit to apply
            identifier: Caller identifier (client IP)

        Returns:
            RateLimitResult with allow/deny decision
        """
        rule = self.rules.get(limit_type)
        if not rule:
            logger.warning(f"No rate limit rule found for {limit_type.value}")
            return RateLimitResult(allowed=True, remaining=0)

        try:
            redis = await self._get_redis()
            now = time.time()
            key = self.key_builder.rate_limit_key(limit_type.value, identifier)

            await redis.zremrangebyscore(key, 0, now - rule.window)
            current_requests = await redis.zcard(key)

            if current_requests >= rule.requests:
                oldest = await redis.zrange(key, 0, 0, withscores=True)
                retry_after = rule.window
                if oldest:
                    retry_after = max(1, int(oldest[0][1] + rule.window - now) + 1)
                logger.warning(
                    "Rate limit exceeded",
                    extra={"limit_type": limit_type.value, "identifier": identifier, "retry_after": retry_after}
                )
                return RateLimitResult(allowed=False, remaining=0, retry_after=retry_after)

            await redis.zadd(key, {f"{now}:{uuid.uuid4().hex}": now})
            await redis.expire(key, rule.window)

            return RateLimitResult(allowed=True, remaining=rule.requests - current_requests - 1)

        except Exception as e:
            logger.error(f"Rate limit check failed: {str(e)}")
            # Fail open - allow request if rate limiting is down
            return RateLimitResult(allowed=True, remaining=0)


_rate_limiting_service: Optional[RateLimitingService] = None


def get_rate_limiting_service() -> RateLimitingService:
    """Get the process-wide rate limiting service"""
    global _rate_limiting_service
    if _rate_limiting_service is None:
        _rate_limiting_service = RateLimitingService()
    return _rate_limiting_service
