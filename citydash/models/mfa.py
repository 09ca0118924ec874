"""MFA (Multi-Factor Authentication) database models."""
from sqlalchemy import Column, String, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .base import Base
import uuid


class MfaEnrollment(Base):
    """TOTP secret and the enrollment QR image rendered for it."""
    __tablename__ = "mfa"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    secret = Column(String, nullable=False)  # Encrypted TOTP secret
    qr_base64 = Column(Text, nullable=False)  # data:image/png;base64,...
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="mfa")

    def __repr__(self):
        return f"<MfaEnrollment(id={self.id}, user_id={self.user_id})>"
