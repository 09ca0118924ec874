from sqlalchemy.orm import Session
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from typing import Optional, Dict, Any, List

from .security import verify_password, verify_dummy_password, get_password_hash
from .schemas import SignupRequest, LoginRequest, ResetPasswordRequest, UpdatePasswordRequest
from .exceptions import (
    InvalidCredentials,
    AccountLocked,
    MfaRequired,
    MfaNotConfigured,
    InvalidMfaToken,
    NewIpRequiresMfa,
    DuplicateEmail,
    PasswordMismatch,
    InvalidOrganization,
    OrganizationRequired,
    InvalidOtp,
)
from .mfa_service import MFAService
from ..config.auth_config import PASSWORD_RESET_OTP_MINUTES, IP_CHALLENGE_OTP_MINUTES
from ..models.user import User, UserLoginDetails
from ..models.tenant import Tenant
from ..models.one_time_code import CodePurpose
from ..services.ip_guard_service import IPGuardService
from ..services.jwt_service import JWTService
from ..services.otp_service import OTPService
from ..core.logging import get_logger
from ..core.utils import utc_now

logger = get_logger(__name__)

FORGOT_PASSWORD_MESSAGE = "If the account exists, a verification code has been sent"


class AuthService:
    def __init__(self, db: Session, code_delivery=None):
        self.db = db
        self.mfa = MFAService(db)
        self.ip_guard = IPGuardService(db)
        self.tokens = JWTService(db)
        self.otp = OTPService(db, code_delivery)

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.execute(
            select(User).where(func.lower(User.email) == email.strip().lower())
        ).scalar_one_or_none()

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        return self.db.execute(
            select(User).where(User.id == user_id)
        ).scalar_one_or_none()

    def _resolve_tenant(self, data: SignupRequest) -> Optional[Tenant]:
        """Create the organization for a creator, or look up the one being joined."""
        if data.is_organization_creator and data.organization_name:
            name = data.organization_name.strip()
            existing = self.db.execute(
                select(Tenant).where(func.lower(Tenant.name) == name.lower())
            ).scalar_one_or_none()
            if existing:
                raise InvalidOrganization("An organization with this name already exists")
            tenant = Tenant(name=name, description=data.organization_description)
            self.db.add(tenant)
            self.db.flush()
            return tenant

        if data.tenant_id:
            tenant = self.db.execute(
                select(Tenant).where(Tenant.id == data.tenant_id)
            ).scalar_one_or_none()
            if tenant is None:
                raise InvalidOrganization()
            return tenant

        raise OrganizationRequired()

    def signup(self, data: SignupRequest, ip_address: str, user_agent: Optional[str] = None) -> Dict[str, Any]:
        """Register a user, trust the signup IP and log them in."""
        if data.password != data.confirm_password:
            raise PasswordMismatch()

        email = data.email.lower()
        if self.get_user_by_email(email):
            raise DuplicateEmail()

        tenant = self._resolve_tenant(data)

        user = User(
            name=data.name,
            email=email,
            phone_number=data.phone_number,
            password=get_password_hash(data.password),
            tenant_id=tenant.id if tenant else None,
        )
        self.db.add(user)
        self.db.flush()

        if tenant is not None and data.is_organization_creator and tenant.created_by is None:
            tenant.created_by = user.id

        self.db.add(UserLoginDetails(
            user_id=user.id,
            whitelisted_ip=[ip_address],
            failed_attempts=0,
        ))

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateEmail()

        logger.info("User signed up", extra={"user_id": user.id, "tenant_id": user.tenant_id, "ip": ip_address})

        return self.login(
            LoginRequest(email=email, password=data.password),
            ip_address,
            user_agent,
        )

    def _lookup_user(self, email: str, password: str, ip_address: str) -> User:
        """Find an active user by email; unknown emails still pay for one bcrypt verify."""
        user = self.get_user_by_email(email)
        if user is None or not user.is_active:
            verify_dummy_password(password)
            logger.warning("Login failed", extra={"reason": "unknown_email", "ip": ip_address})
            raise InvalidCredentials()
        return user

    def _verify_user_password(self, user: User, password: str, ip_address: str) -> None:
        if not verify_password(password, user.password):
            self.ip_guard.record_failed_attempt(user.id, ip_address)
            self.db.commit()
            logger.warning("Login failed", extra={"reason": "bad_password", "user_id": user.id, "ip": ip_address})
            raise InvalidCredentials()

    def login(self, data: LoginRequest, ip_address: str, user_agent: Optional[str] = None) -> Dict[str, Any]:
        """
        Authenticate with password, MFA and the IP whitelist, then open a session.

        Guards run in a fixed order; a single valid TOTP code satisfies both
        the MFA guard and the new-IP guard.
        """
        user = self._lookup_user(data.email, data.password, ip_address)

        if user.is_locked:
            logger.warning("Login refused for locked account", extra={"user_id": user.id, "ip": ip_address})
            raise AccountLocked()

        self._verify_user_password(user, data.password, ip_address)

        mfa_proven = False
        if user.is_mfa_enabled:
            if not data.mfa_token:
                raise MfaRequired()
            enrollment = self.mfa.get_enrollment(user.id)
            if enrollment is None:
                raise MfaNotConfigured()
            if not self.mfa.verify_totp_token(enrollment, data.mfa_token):
                logger.warning("Login failed", extra={"reason": "bad_mfa_token", "user_id": user.id})
                raise InvalidMfaToken()
            mfa_proven = True

        details = self.ip_guard.ensure_login_details(user.id)
        if not details.is_whitelisted(ip_address):
            enrollment = None if mfa_proven or not data.mfa_token else self.mfa.get_enrollment(user.id)
            if mfa_proven:
                self.ip_guard.unlock_and_whitelist(user, ip_address)
            elif enrollment is not None:
                if not self.mfa.verify_totp_token(enrollment, data.mfa_token):
                    logger.warning("Login failed", extra={"reason": "bad_mfa_token", "user_id": user.id})
                    raise InvalidMfaToken()
                self.ip_guard.unlock_and_whitelist(user, ip_address)
            else:
                self.ip_guard.lock_and_challenge(user, ip_address)
                self.db.commit()
                raise NewIpRequiresMfa()

        self.ip_guard.record_successful_login(details)
        self.db.commit()

        tokens = self.tokens.issue_token_pair(user.id, user.tenant_id, ip_address, user_agent)
        logger.info("Login succeeded", extra={"user_id": user.id, "session_id": tokens["sessionId"], "ip": ip_address})

        return {
            "accessToken": tokens["accessToken"],
            "refreshToken": tokens["refreshToken"],
            "user": user.summary(),
        }

    def request_mfa_challenge(self, email: str, password: str, ip_address: str) -> str:
        """Start the unlock flow for a new IP. Locked accounts may use it."""
        user = self._lookup_user(email, password, ip_address)
        self._verify_user_password(user, password, ip_address)

        if self.mfa.get_enrollment(user.id) is not None:
            return "Use the code from your authenticator app"

        self.otp.issue(user, CodePurpose.IP_CHALLENGE, IP_CHALLENGE_OTP_MINUTES)
        return "A verification code has been sent"

    def verify_mfa_challenge(self, email: str, password: str, mfa_token: str, ip_address: str) -> str:
        user = self._lookup_user(email, password, ip_address)
        self._verify_user_password(user, password, ip_address)

        enrollment = self.mfa.get_enrollment(user.id)
        if enrollment is not None:
            valid = self.mfa.verify_totp_token(enrollment, mfa_token)
        else:
            valid = self.otp.verify(user.id, CodePurpose.IP_CHALLENGE, mfa_token)
            if valid:
                self.otp.discard(user.id, CodePurpose.IP_CHALLENGE)

        if not valid:
            logger.warning("MFA challenge failed", extra={"user_id": user.id, "ip": ip_address})
            raise InvalidMfaToken()

        self.validate_after_mfa_challenge(user, ip_address)
        return "MFA verified. You can now log in from this IP"

    def validate_after_mfa_challenge(self, user: User, ip_address: str) -> None:
        """Whitelist the IP and clear the lock after a successful challenge."""
        self.ip_guard.unlock_and_whitelist(user, ip_address)
        self.db.commit()

    def refresh_token(self, refresh_token: str) -> str:
        return self.tokens.refresh_access_token(refresh_token)

    def logout(self, session_id: str) -> None:
        revoked = self.tokens.logout_session(session_id)
        logger.info("Logout", extra={"session_id": session_id, "revoked": revoked})

    def get_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        return self.tokens.sessions.get_user_sessions(user_id)

    def initiate_forgot_password(self, email: str) -> str:
        user = self.get_user_by_email(email)
        if user is not None and user.is_active:
            self.otp.issue(user, CodePurpose.PASSWORD_RESET, PASSWORD_RESET_OTP_MINUTES)
        else:
            logger.info("Password reset requested for unknown email")
        return FORGOT_PASSWORD_MESSAGE

    def _user_with_valid_reset_code(self, email: str, otp: str) -> User:
        user = self.get_user_by_email(email)
        if user is None or not self.otp.verify(user.id, CodePurpose.PASSWORD_RESET, otp):
            raise InvalidOtp()
        return user

    def verify_otp(self, email: str, otp: str) -> bool:
        self._user_with_valid_reset_code(email, otp)
        return True

    def reset_password(self, data: ResetPasswordRequest) -> None:
        """Set a new password using a reset code and sign out everywhere."""
        if data.new_password != data.confirm_password:
            raise PasswordMismatch()

        user = self._user_with_valid_reset_code(data.email, data.otp)
        user.password = get_password_hash(data.new_password)
        user.updated_at = utc_now()
        self.otp.discard(user.id, CodePurpose.PASSWORD_RESET)
        self.db.commit()

        revoked = self.tokens.sessions.revoke_all_user_sessions(user.id)
        logger.info("Password reset", extra={"user_id": user.id, "sessions_revoked": revoked})

    def update_password(self, user: User, data: UpdatePasswordRequest, current_session_id: Optional[str] = None) -> None:
        """Change the password and sign out every other session."""
        if not verify_password(data.current_password, user.password):
            raise InvalidCredentials("Current password is incorrect")
        if data.new_password != data.confirm_password:
            raise PasswordMismatch()

        user.password = get_password_hash(data.new_password)
        user.updated_at = utc_now()
        self.db.commit()

        revoked = self.tokens.sessions.revoke_all_user_sessions(user.id, except_session_id=current_session_id)
        logger.info("Password updated", extra={"user_id": user.id, "sessions_revoked": revoked})
