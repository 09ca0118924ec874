"""Session/IP guard: lock and whitelist transitions over login details."""

from typing import Optional
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models.user import User, UserLoginDetails
from ..core.logging import get_logger
from ..core.utils import utc_now

logger = get_logger(__name__)


class IPGuardService:
    """State transitions over (is_locked, whitelisted_ip, failed_attempts).

    Callers commit; every method only mutates rows loaded in the current
    transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_login_details(self, user_id: str, for_update: bool = False) -> Optional[UserLoginDetails]:
        query = select(UserLoginDetails).where(UserLoginDetails.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        return self.db.execute(query).scalar_one_or_none()

    def ensure_login_details(self, user_id: str) -> UserLoginDetails:
        details = self.get_login_details(user_id, for_update=True)
        if details is None:
            details = UserLoginDetails(user_id=user_id, whitelisted_ip=[], failed_attempts=0)
            self.db.add(details)
        return details

    @staticmethod
    def whitelist_ip(details: UserLoginDetails, ip_address: str) -> bool:
        """Append an IP unless already present. Returns True when the list changed."""
        current = list(details.whitelisted_ip or [])
        if ip_address in current:
            return False
        # Assign a new list so the JSON column is flagged dirty
        details.whitelisted_ip = current + [ip_address]
        return True

    def lock_and_challenge(self, user: User, ip_address: str) -> None:
        """New IP seen during password login: lock until an MFA challenge succeeds."""
        user.is_locked = True
        logger.warning(
            "Account locked pending MFA challenge",
            extra={"user_id": user.id, "ip": ip_address}
        )

    def unlock_and_whitelist(self, user: User, ip_address: str) -> UserLoginDetails:
        """Successful MFA challenge: trust the IP and clear the lock."""
        details = self.ensure_login_details(user.id)
        added = self.whitelist_ip(details, ip_address)
        was_locked = bool(user.is_locked)
        user.is_locked = False
        logger.info(
            "MFA challenge satisfied",
            extra={"user_id": user.id, "ip": ip_address, "ip_added": added, "unlocked": was_locked}
        )
        return details

    def record_failed_attempt(self, user_id: str, ip_address: str) -> None:
        details = self.get_login_details(user_id, for_update=True)
        if details is None:
            return
        details.failed_attempts = (details.failed_attempts or 0) + 1
        details.last_failed_ip = ip_address
        details.last_failed_at = utc_now()

    def record_successful_login(self, details: UserLoginDetails) -> None:
        details.failed_attempts = 0
        details.last_login = utc_now()
