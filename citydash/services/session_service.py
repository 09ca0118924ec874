"""Database-backed login session store."""

from datetime import datetime
from typing import Optional, List, Dict, Any
from sqlalchemy import select, delete
from sqlalchemy.orm import Session

from ..models.session import UserSession
from ..core.logging import get_logger
from ..core.utils import utc_now

logger = get_logger(__name__)


class SessionService:
    """Create, list and revoke login sessions."""

    def __init__(self, db: Session):
        self.db = db

    def create_session(
        self,
        user_id: str,
        ip_address: Optional[str],
        user_agent: Optional[str],
        expires_at: datetime,
    ) -> UserSession:
        # Drop this user's expired rows
        self._delete_expired(UserSession.user_id == user_id)

        session = UserSession(
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent or "",
            expires_at=expires_at,
        )
        self.db.add(session)
        self.db.flush()
        return session

    def get_session(self, session_id: str) -> Optional[UserSession]:
        if not session_id:
            return None
        return self.db.execute(
            select(UserSession).where(UserSession.id == session_id)
        ).scalar_one_or_none()

    def get_active_session(self, session_id: str) -> Optional[UserSession]:
        session = self.get_session(session_id)
        if session is None or not session.is_active():
            return None
        return session

    def get_user_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        """Active sessions for a user, most recent login first."""
        now = utc_now()
        sessions = self.db.execute(
            select(UserSession)
            .where(
                UserSession.user_id == user_id,
                UserSession.revoked_at.is_(None),
                UserSession.expires_at > now,
            )
            .order_by(UserSession.created_at.desc())
        ).scalars().all()
        return [session.to_summary() for session in sessions if session.is_active()]

    def revoke_session(self, session_id: str) -> bool:
        """Revoke one session. Returns False when it was already revoked or unknown."""
        session = self.get_session(session_id)
        if session is None or session.revoked_at is not None:
            return False
        session.revoke()
        self.db.commit()
        logger.info("Session revoked", extra={"session_id": session_id, "user_id": session.user_id})
        return True

    def revoke_all_user_sessions(self, user_id: str, except_session_id: Optional[str] = None) -> int:
        """Revoke every live session of a user, optionally sparing one."""
        query = select(UserSession).where(
            UserSession.user_id == user_id,
            UserSession.revoked_at.is_(None),
        )
        if except_session_id:
            query = query.where(UserSession.id != except_session_id)

        sessions = self.db.execute(query).scalars().all()
        for session in sessions:
            session.revoke()
        self.db.commit()
        logger.info("All sessions revoked", extra={"user_id": user_id, "count": len(sessions)})
        return len(sessions)

    def _delete_expired(self, *criteria) -> int:
        result = self.db.execute(
            delete(UserSession)
            .where(UserSession.expires_at < utc_now(), *criteria)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def cleanup_expired_sessions(self) -> int:
        """Delete every expired session row. Returns the number of rows removed."""
        removed = self._delete_expired()
        self.db.commit()
        if removed:
            logger.info("Expired sessions removed", extra={"count": removed})
        return removed
