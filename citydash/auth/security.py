import base64
import hashlib
import hmac
import os
from passlib.context import CryptContext
from cryptography.fernet import Fernet, InvalidToken
from dotenv import load_dotenv

from ..core.logging import get_logger

load_dotenv()

logger = get_logger(__name__)

# Security configuration
SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key-change-this-in-production")
ALGORITHM = "HS256"

# Encryption key for TOTP secrets at rest
ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY")
if not ENCRYPTION_KEY:
    # Development only: secrets encrypted with this key do not survive a restart
    logger.warning("ENCRYPTION_KEY not set, generating an ephemeral key")
    ENCRYPTION_KEY = base64.urlsafe_b64encode(os.urandom(32)).decode()

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

fernet = Fernet(ENCRYPTION_KEY.encode() if len(ENCRYPTION_KEY) == 44 else base64.urlsafe_b64encode(ENCRYPTION_KEY.encode()[:32].ljust(32, b"0")))

_dummy_hash = None


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Generate password hash."""
    return pwd_context.hash(password)


def verify_dummy_password(plain_password: str) -> bool:
    """Spend one bcrypt verification when there is no stored hash to check.

    Keeps the unknown-email path as expensive as the wrong-password path.
    Always returns False.
    """
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = pwd_context.hash("citydash-dummy-password")
    pwd_context.verify(plain_password, _dummy_hash)
    return False


def hash_token(value: str) -> str:
    """SHA256 hex digest used to store refresh tokens and one-time codes."""
    return hashlib.sha256(value.encode()).hexdigest()


def tokens_match(value: str, expected_hash: str) -> bool:
    return hmac.compare_digest(hash_token(value), expected_hash or "")


def encrypt_sensitive_data(data: str) -> str:
    """Encrypt sensitive data using Fernet encryption."""
    if not data:
        return data
    return fernet.encrypt(data.encode()).decode()


def decrypt_sensitive_data(encrypted_data: str) -> str:
    """Decrypt sensitive data using Fernet encryption."""
    if not encrypted_data:
        return encrypted_data
    try:
        return fernet.decrypt(encrypted_data.encode()).decode()
    except InvalidToken:
        logger.error("Failed to decrypt stored secret, check ENCRYPTION_KEY")
        return ""
