"""Authentication, MFA and session configuration."""

import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


# Token lifetimes
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))

# TOTP
TOTP_ISSUER = os.getenv("TOTP_ISSUER", "CityDash")
TOTP_VALID_WINDOW = int(os.getenv("TOTP_VALID_WINDOW", "1"))  # +/- 30 second steps

# One-time codes sent through the delivery channel
PASSWORD_RESET_OTP_MINUTES = int(os.getenv("PASSWORD_RESET_OTP_MINUTES", "15"))
IP_CHALLENGE_OTP_MINUTES = int(os.getenv("IP_CHALLENGE_OTP_MINUTES", "10"))
OTP_LENGTH = 6
OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", "5"))  # wrong guesses before a code is discarded

# Login throttling: 1 request per 6 seconds per caller
LOGIN_RATE_LIMIT_REQUESTS = int(os.getenv("LOGIN_RATE_LIMIT_REQUESTS", "1"))
LOGIN_RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("LOGIN_RATE_LIMIT_WINDOW_SECONDS", "6"))

# Only enable behind a proxy that overwrites X-Forwarded-For
TRUST_FORWARDED_HEADERS = _env_flag("TRUST_FORWARDED_HEADERS")
