"""Client-facing authentication errors.

Every error carries a stable machine readable ``kind`` next to the human
readable ``detail``; ``citydash.main`` renders both.
"""
from fastapi import HTTPException, status


class AuthError(HTTPException):
    kind = "AuthError"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Authentication error"

    def __init__(self, detail: str = None, headers: dict = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.message,
            headers=headers,
        )


class InvalidCredentials(AuthError):
    kind = "InvalidCredentials"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid credentials!"

    def __init__(self, detail: str = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class AccountLocked(AuthError):
    kind = "AccountLocked"
    status_code = status.HTTP_403_FORBIDDEN
    message = "Account is locked. Complete MFA verification to unlock it"


class MfaRequired(AuthError):
    kind = "MfaRequired"
    status_code = status.HTTP_403_FORBIDDEN
    message = "MFA token is required"


class MfaNotConfigured(AuthError):
    kind = "MfaNotConfigured"
    status_code = status.HTTP_403_FORBIDDEN
    message = "MFA is not set up for this user"


class InvalidMfaToken(AuthError):
    kind = "InvalidMfaToken"
    status_code = status.HTTP_403_FORBIDDEN
    message = "Invalid MFA token"


class NewIpRequiresMfa(AuthError):
    kind = "NewIpRequiresMfa"
    status_code = status.HTTP_403_FORBIDDEN
    message = "New IP detected. MFA verification is required"


class DuplicateEmail(AuthError):
    kind = "DuplicateEmail"
    status_code = status.HTTP_403_FORBIDDEN
    message = "A user with this email already exists"


class InvalidRefreshToken(AuthError):
    kind = "InvalidRefreshToken"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid or expired refresh token"

    def __init__(self, detail: str = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class PasswordMismatch(AuthError):
    kind = "PasswordMismatch"
    status_code = status.HTTP_403_FORBIDDEN
    message = "Passwords do not match"


class InvalidOrganization(AuthError):
    kind = "InvalidOrganization"
    status_code = status.HTTP_403_FORBIDDEN
    message = "Invalid organization ID"


class OrganizationRequired(AuthError):
    kind = "OrganizationRequired"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Please specify either organizationName (for new org) or tenantId (for existing org)"


class InvalidOtp(AuthError):
    kind = "InvalidOtp"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid or expired OTP"


class NotAuthenticated(AuthError):
    kind = "NotAuthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Could not validate credentials"

    def __init__(self, detail: str = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class TooManyRequests(AuthError):
    kind = "TooManyRequests"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    message = "Too many requests. Try again later."

    def __init__(self, retry_after: int = None):
        headers = {"Retry-After": str(retry_after)} if retry_after else None
        super().__init__(None, headers=headers)
