"""Login session records backing token revocation and the session list."""

from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from .base import Base
from ..core.utils import as_utc
import uuid


class UserSession(Base):
    """One row per successful login."""
    __tablename__ = "user_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    ip_address = Column(String(45))  # IPv6 compatible
    user_agent = Column(Text)

    refresh_token_hash = Column(String(64), nullable=True)  # SHA256 of the refresh token
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="sessions")

    __table_args__ = (
        Index("idx_user_sessions_user_id", "user_id"),
        Index("idx_user_sessions_expires", "expires_at"),
    )

    def __repr__(self):
        return f"<UserSession(id={self.id}, user_id={self.user_id}, active={self.is_active()})>"

    def is_expired(self) -> bool:
        return datetime.now(timezone.utc) >= as_utc(self.expires_at)

    def is_active(self) -> bool:
        return self.revoked_at is None and not self.is_expired()

    def revoke(self):
        """Revoke the session. Revoking twice keeps the first timestamp."""
        if self.revoked_at is None:
            self.revoked_at = datetime.now(timezone.utc)

    def to_summary(self) -> dict:
        return {
            "ip": self.ip_address,
            "device": self.user_agent,
            "loggedInAt": as_utc(self.created_at).isoformat() if self.created_at else None,
        }
