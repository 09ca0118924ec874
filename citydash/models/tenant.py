from sqlalchemy import Column, String, DateTime, Text
from sqlalchemy.sql import func
from .base import Base
import uuid


class Tenant(Base):
    """Organization a dashboard user belongs to."""
    __tablename__ = "tenants"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Tenant(id={self.id}, name={self.name})>"
