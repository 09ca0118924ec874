"""One-time codes for password recovery and new-IP challenges."""

import secrets
from datetime import timedelta
from typing import Optional
from sqlalchemy import select, delete
from sqlalchemy.orm import Session

from ..config.auth_config import OTP_LENGTH, OTP_MAX_ATTEMPTS
from ..auth.security import hash_token, tokens_match
from ..models.one_time_code import OneTimeCode, CodePurpose
from ..core.utils import as_utc, utc_now
from ..models.user import User
from ..core.logging import get_logger

logger = get_logger(__name__)


class LoggingCodeDelivery:
    """Default delivery channel: records that a code went out, never the code itself.

    Swap in an email or SMS sender through ``get_code_delivery``.
    """

    def deliver(self, user: User, purpose: CodePurpose, code: str) -> None:
        logger.info(
            "One-time code issued",
            extra={"user_id": user.id, "purpose": purpose.value}
        )


_code_delivery = LoggingCodeDelivery()


def get_code_delivery():
    """FastAPI dependency returning the process-wide delivery channel."""
    return _code_delivery


class OTPService:
    def __init__(self, db: Session, delivery=None):
        self.db = db
        self.delivery = delivery or _code_delivery

    @staticmethod
    def _generate_code() -> str:
        return "".join(str(secrets.randbelow(10)) for _ in range(OTP_LENGTH))

    def _get(self, user_id: str, purpose: CodePurpose) -> Optional[OneTimeCode]:
        return self.db.execute(
            select(OneTimeCode).where(
                OneTimeCode.user_id == user_id,
                OneTimeCode.purpose == purpose.value,
            )
        ).scalar_one_or_none()

    def issue(self, user: User, purpose: CodePurpose, ttl_minutes: int) -> None:
        """Store a fresh code, replacing any pending one, then deliver it."""
        code = self._generate_code()
        expires_at = utc_now() + timedelta(minutes=ttl_minutes)

        record = self._get(user.id, purpose)
        if record is None:
            record = OneTimeCode(user_id=user.id, purpose=purpose.value)
            self.db.add(record)
        record.code_hash = hash_token(code)
        record.expires_at = expires_at
        record.attempts = 0
        self.db.commit()

        self.delivery.deliver(user, purpose, code)

    def verify(self, user_id: str, purpose: CodePurpose, code: str) -> bool:
        """
        Check a code. Wrong guesses are counted; the code is discarded once
        OTP_MAX_ATTEMPTS is reached, so even the right code fails afterwards.
        """
        record = self._get(user_id, purpose)
        if record is None:
            return False
        if utc_now() >= as_utc(record.expires_at):
            return False
        if code and tokens_match(code.strip(), record.code_hash):
            return True

        record.attempts = (record.attempts or 0) + 1
        if record.attempts >= OTP_MAX_ATTEMPTS:
            self.db.delete(record)
            logger.warning(
                "One-time code discarded after too many wrong guesses",
                extra={"user_id": user_id, "purpose": purpose.value}
            )
        self.db.commit()
        return False

    def discard(self, user_id: str, purpose: CodePurpose) -> None:
        record = self._get(user_id, purpose)
        if record is not None:
            self.db.delete(record)

    def cleanup_expired_codes(self) -> int:
        """Delete every expired code. Returns the number of rows removed."""
        result = self.db.execute(
            delete(OneTimeCode)
            .where(OneTimeCode.expires_at < utc_now())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        if result.rowcount:
            logger.info("Expired one-time codes removed", extra={"count": result.rowcount})
        return result.rowcount
