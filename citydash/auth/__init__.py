"""Local authentication: signup, login, MFA, tokens and password recovery.

The HTTP routes live in ``citydash.auth.router``; import it from there.
"""
from .exceptions import AuthError
from .security import verify_password, get_password_hash

__all__ = [
    "AuthError",
    "verify_password",
    "get_password_hash",
]
