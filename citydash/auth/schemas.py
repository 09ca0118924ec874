"""Request and response schemas for the local authentication endpoints."""
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional


def validate_password_strength(value: str) -> str:
    """Shared password rule: 6+ characters with upper, lower and digit."""
    if len(value) < 6:
        raise ValueError("Password must be at least 6 characters")
    if not any(c.isupper() for c in value):
        raise ValueError("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in value):
        raise ValueError("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in value):
        raise ValueError("Password must contain at least one number")
    return value


class SignupRequest(BaseModel):
    """User registration data."""
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    password: str
    confirm_password: str = Field(..., alias="confirmPassword")
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    is_organization_creator: bool = Field(False, alias="isOrganizationCreator")
    organization_name: Optional[str] = Field(None, alias="organizationName")
    organization_description: Optional[str] = Field(None, alias="organizationDescription")
    tenant_id: Optional[str] = Field(None, alias="tenantId")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "name": "John Doe",
                "email": "john.doe@example.com",
                "password": "Password123",
                "confirmPassword": "Password123",
                "phoneNumber": "+11234567890",
                "isOrganizationCreator": True,
                "organizationName": "ACME Corporation"
            }
        }

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        return validate_password_strength(v)


class LoginRequest(BaseModel):
    """User login credentials."""
    email: EmailStr
    password: str = Field(..., min_length=1)
    mfa_token: Optional[str] = Field(None, alias="mfaToken", description="TOTP code if MFA is enabled")

    class Config:
        populate_by_name = True


class UserSummary(BaseModel):
    id: str
    name: str
    email: str
    tenant_id: Optional[str] = Field(None, alias="tenantId")

    class Config:
        populate_by_name = True


class TokenPairResponse(BaseModel):
    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")
    user: UserSummary

    class Config:
        populate_by_name = True


class RefreshTokenRequest(BaseModel):
    token: Optional[str] = Field(None, description="Refresh token; falls back to the bearer header")


class AccessTokenResponse(BaseModel):
    access_token: str = Field(..., alias="accessToken")

    class Config:
        populate_by_name = True


class MessageResponse(BaseModel):
    message: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr
    phone_number: Optional[str] = Field(None, alias="phoneNumber")

    class Config:
        populate_by_name = True


class VerifyOtpRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=1)


class VerifyOtpResponse(BaseModel):
    message: str
    is_valid: bool = Field(..., alias="isValid")

    class Config:
        populate_by_name = True


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=1)
    new_password: str = Field(..., alias="newPassword")
    confirm_password: str = Field(..., alias="confirmPassword")

    class Config:
        populate_by_name = True

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v):
        return validate_password_strength(v)


class UpdatePasswordRequest(BaseModel):
    current_password: str = Field(..., alias="currentPassword", min_length=1)
    new_password: str = Field(..., alias="newPassword")
    confirm_password: str = Field(..., alias="confirmPassword")

    class Config:
        populate_by_name = True

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v):
        return validate_password_strength(v)

    @model_validator(mode="after")
    def new_password_differs(self):
        if self.new_password == self.current_password:
            raise ValueError("New password must differ from the current password")
        return self
