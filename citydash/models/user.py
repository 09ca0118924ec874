from sqlalchemy import Column, String, DateTime, Boolean, Integer, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .base import Base
import uuid


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone_number = Column(String, nullable=True)
    password = Column(String, nullable=False)  # bcrypt hash
    is_mfa_enabled = Column(Boolean, nullable=False, default=False)
    is_locked = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    login_details = relationship("UserLoginDetails", back_populates="user", uselist=False, cascade="all, delete-orphan")
    mfa = relationship("MfaEnrollment", back_populates="user", uselist=False, cascade="all, delete-orphan")
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")
    tenant = relationship("Tenant", foreign_keys=[tenant_id])

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, locked={self.is_locked})>"

    def summary(self) -> dict:
        """Public projection returned by signup and login."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "tenantId": self.tenant_id,
        }


class UserLoginDetails(Base):
    """Per-user login bookkeeping: IP whitelist and failed attempts."""
    __tablename__ = "user_login_details"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    last_login = Column(DateTime(timezone=True), nullable=True)
    whitelisted_ip = Column(JSON, nullable=False, default=list)  # ordered, no duplicates
    failed_attempts = Column(Integer, nullable=False, default=0)
    last_failed_ip = Column(String, nullable=True)
    last_failed_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="login_details")

    def __repr__(self):
        return f"<UserLoginDetails(user_id={self.user_id}, ips={len(self.whitelisted_ip or [])})>"

    def is_whitelisted(self, ip_address: str) -> bool:
        return ip_address in (self.whitelisted_ip or [])
