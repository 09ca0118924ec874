"""MFA (Multi-Factor Authentication) Pydantic schemas."""
from pydantic import BaseModel, EmailStr, Field, field_validator


class MfaChallengeRequest(BaseModel):
    """Ask for a challenge code after a new-IP login was refused."""
    email: EmailStr
    password: str = Field(..., min_length=1)


class VerifyMfaRequest(BaseModel):
    """Answer the new-IP challenge with a TOTP or emailed code."""
    email: EmailStr
    password: str = Field(..., min_length=1)
    mfa_token: str = Field(..., alias="mfaToken", min_length=6, max_length=6, description="6-digit code")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "email": "john.doe@example.com",
                "password": "Password123",
                "mfaToken": "123456"
            }
        }

    @field_validator("mfa_token")
    @classmethod
    def validate_token(cls, v):
        """Validate token format."""
        if not v.isdigit():
            raise ValueError("Token must contain only digits")
        return v


class MfaStatusResponse(BaseModel):
    message: str
    enabled: bool
