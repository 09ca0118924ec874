"""JWT access/refresh token issuer bound to database sessions."""

import uuid
from datetime import timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from ..config.auth_config import ACCESS_TOKEN_EXPIRE_MINUTES, REFRESH_TOKEN_EXPIRE_DAYS
from ..auth.security import SECRET_KEY, ALGORITHM, hash_token, tokens_match
from ..auth.exceptions import InvalidRefreshToken
from ..core.logging import get_logger
from ..core.utils import utc_now
from .session_service import SessionService

logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class JWTService:
    """Issues and verifies access and refresh tokens."""

    def __init__(self, db: Session):
        self.db = db
        self.sessions = SessionService(db)

    def _generate_jti(self) -> str:
        """Generate unique JWT ID."""
        return str(uuid.uuid4())

    def _encode(self, claims: Dict[str, Any], expires_delta: timedelta) -> str:
        now = utc_now()
        to_encode = dict(claims)
        to_encode.update({
            "iat": now,
            "exp": now + expires_delta,
            "jti": self._generate_jti(),
        })
        return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

    def create_access_token(
        self,
        user_id: str,
        session_id: str,
        tenant_id: Optional[str] = None,
        expires_delta: Optional[timedelta] = None
    ) -> str:
        """Create short-lived access token."""
        claims = {
            "sub": str(user_id),
            "sid": session_id,
            "tenant_id": tenant_id,
            "type": ACCESS_TOKEN_TYPE,
        }
        return self._encode(claims, expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))

    def create_refresh_token(
        self,
        user_id: str,
        session_id: str,
        tenant_id: Optional[str] = None,
        expires_delta: Optional[timedelta] = None
    ) -> str:
        """Create refresh token used solely to mint new access tokens."""
        claims = {
            "sub": str(user_id),
            "sid": session_id,
            "tenant_id": tenant_id,
            "type": REFRESH_TOKEN_TYPE,
        }
        return self._encode(claims, expires_delta or timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS))

    def decode_token(self, token: str, expected_type: str) -> Optional[Dict[str, Any]]:
        """Check signature, expiry and token type. Returns None on any failure."""
        try:
            payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        except JWTError:
            return None

        if payload.get("type") != expected_type:
            return None
        if not payload.get("sub") or not payload.get("sid"):
            return None
        return payload

    def issue_token_pair(
        self,
        user_id: str,
        tenant_id: Optional[str],
        ip_address: Optional[str],
        user_agent: Optional[str]
    ) -> Dict[str, str]:
        """Open a session and mint the access/refresh pair bound to it."""
        expires_at = utc_now() + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
        session = self.sessions.create_session(user_id, ip_address, user_agent, expires_at)

        access_token = self.create_access_token(user_id, session.id, tenant_id)
        refresh_token = self.create_refresh_token(user_id, session.id, tenant_id)
        session.refresh_token_hash = hash_token(refresh_token)
        self.db.commit()

        return {
            "accessToken": access_token,
            "refreshToken": refresh_token,
            "sessionId": session.id,
        }

    def verify_access_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Decode an access token and require its session to still be active."""
        payload = self.decode_token(token, ACCESS_TOKEN_TYPE)
        if payload is None:
            return None

        session = self.sessions.get_active_session(payload["sid"])
        if session is None or session.user_id != payload["sub"]:
            return None
        return payload

    def refresh_access_token(self, refresh_token: str) -> str:
        """Mint a new access token for the session the refresh token is bound to."""
        payload = self.decode_token(refresh_token, REFRESH_TOKEN_TYPE)
        if payload is None:
            logger.warning("Refresh rejected: bad signature, expiry or type")
            raise InvalidRefreshToken()

        session = self.sessions.get_active_session(payload["sid"])
        if session is None or session.user_id != payload["sub"]:
            logger.warning("Refresh rejected: session revoked or expired", extra={"session_id": payload["sid"]})
            raise InvalidRefreshToken()

        if not tokens_match(refresh_token, session.refresh_token_hash):
            logger.warning("Refresh rejected: token not bound to session", extra={"session_id": session.id})
            raise InvalidRefreshToken()

        return self.create_access_token(payload["sub"], session.id, payload.get("tenant_id"))

    def logout_session(self, session_id: str) -> bool:
        """Revoke the session behind a token pair. Safe to call repeatedly."""
        return self.sessions.revoke_session(session_id)
