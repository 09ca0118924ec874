from .base import Base
from .tenant import Tenant
from .user import User, UserLoginDetails
from .mfa import MfaEnrollment
from .session import UserSession
from .one_time_code import OneTimeCode, CodePurpose

__all__ = [
    "Base",
    "Tenant",
    "User",
    "UserLoginDetails",
    "MfaEnrollment",
    "UserSession",
    "OneTimeCode",
    "CodePurpose",
]
