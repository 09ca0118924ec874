"""Short-lived numeric codes delivered out of band."""
from enum import Enum
from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from .base import Base
import uuid


class CodePurpose(str, Enum):
    PASSWORD_RESET = "password_reset"
    IP_CHALLENGE = "ip_challenge"


class OneTimeCode(Base):
    __tablename__ = "one_time_codes"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    purpose = Column(String, nullable=False)
    code_hash = Column(String(64), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    attempts = Column(Integer, nullable=False, default=0)  # wrong guesses so far
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "purpose", name="uq_one_time_codes_user_purpose"),
    )

    def __repr__(self):
        return f"<OneTimeCode(user_id={self.user_id}, purpose={self.purpose})>"
