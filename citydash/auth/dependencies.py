from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional, Dict, Any

from .exceptions import NotAuthenticated, TooManyRequests
from ..config import auth_config
from ..models.user import User
from ..database import get_db
from ..services.jwt_service import JWTService
from ..services.rate_limiting_service import (
    RateLimitingService,
    RateLimitType,
    get_rate_limiting_service,
)
# Security scheme
security = HTTPBearer(auto_error=False)


def get_client_ip(request: Request) -> str:
    """
    Source IP of the caller.

    Forwarded headers are honoured only when TRUST_FORWARDED_HEADERS is on.
    """
    if auth_config.TRUST_FORWARDED_HEADERS:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # Take the first IP in the chain
            return forwarded_for.split(",")[0].strip()
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()
    return request.client.host if request.client else "unknown"


def get_user_agent(request: Request) -> str:
    return request.headers.get("User-Agent", "")


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """Verified access token claims; the token's session must still be active."""
    if credentials is None:
        raise NotAuthenticated()

    payload = JWTService(db).verify_access_token(credentials.credentials)
    if payload is None:
        raise NotAuthenticated()
    return payload


def get_current_user(
    payload: Dict[str, Any] = Depends(get_token_payload),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user."""
    user = db.get(User, payload["sub"])
    if user is None or not user.is_active:
        raise NotAuthenticated()
    return user


def rate_limit(limit_type: RateLimitType):
    """Build a per-IP throttle dependency for one rate limited operation."""
    async def dependency(
        request: Request,
        limiter: RateLimitingService = Depends(get_rate_limiting_service)
    ) -> None:
        result = await limiter.hit(limit_type, get_client_ip(request))
        if not result.allowed:
            raise TooManyRequests(result.retry_after)

    return dependency


rate_limit_login = rate_limit(RateLimitType.LOGIN_ATTEMPT)
rate_limit_password_reset = rate_limit(RateLimitType.PASSWORD_RESET)
rate_limit_mfa_challenge = rate_limit(RateLimitType.MFA_CHALLENGE)
rate_limit_otp_verify = rate_limit(RateLimitType.OTP_VERIFY)
