"""MFA (Multi-Factor Authentication) enrollment and verification."""
from typing import Optional
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models.mfa import MfaEnrollment
from ..models.user import User
from ..services.totp_service import TOTPService
from ..core.logging import get_logger
from .security import encrypt_sensitive_data, decrypt_sensitive_data

logger = get_logger(__name__)


class MFAService:
    """TOTP enrollment lifecycle for a user."""

    def __init__(self, db: Session, totp: Optional[TOTPService] = None):
        self.db = db
        self.totp = totp or TOTPService()

    def get_enrollment(self, user_id: str) -> Optional[MfaEnrollment]:
        return self.db.execute(
            select(MfaEnrollment).where(MfaEnrollment.user_id == user_id)
        ).scalar_one_or_none()

    def activate_mfa(self, user: User) -> bytes:
        """
        Enable MFA and return the enrollment QR code as PNG bytes.

        The secret and image are generated once; later calls return the
        stored image unchanged so the authenticator app keeps working.
        """
        enrollment = self.get_enrollment(user.id)

        if enrollment is None:
            secret, qr_data_url = self.totp.generate_secret(user.email)
            enrollment = MfaEnrollment(
                user_id=user.id,
                secret=encrypt_sensitive_data(secret),
                qr_base64=qr_data_url
            )
            self.db.add(enrollment)
            logger.info("MFA enrollment created", extra={"user_id": user.id})

        if not user.is_mfa_enabled:
            user.is_mfa_enabled = True
            logger.info("MFA enabled", extra={"user_id": user.id})

        self.db.commit()
        return self.totp.image_bytes(enrollment.qr_base64)

    def deactivate_mfa(self, user: User) -> None:
        """Turn MFA off. The enrollment is kept so re-activation shows the same QR code."""
        user.is_mfa_enabled = False
        self.db.commit()
        logger.info("MFA disabled", extra={"user_id": user.id})

    def verify_totp_token(self, enrollment: MfaEnrollment, token: str) -> bool:
        """Verify TOTP token against an enrollment's secret."""
        secret = decrypt_sensitive_data(enrollment.secret)
        if not secret:
            return False
        return self.totp.verify(secret, token)
