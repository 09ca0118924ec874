"""Session management schemas."""

from pydantic import BaseModel, Field
from typing import Optional


class SessionInfo(BaseModel):
    """Active login session as shown to its owner."""
    ip: Optional[str] = None
    device: Optional[str] = None
    logged_in_at: Optional[str] = Field(None, alias="loggedInAt")

    class Config:
        populate_by_name = True
