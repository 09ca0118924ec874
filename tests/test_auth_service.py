"""Signup and login flows through AuthService."""
import pyotp
import pytest
from unittest.mock import patch

from citydash.auth.exceptions import (
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
)
from citydash.auth.mfa_service import MFAService
from citydash.auth.schemas import SignupRequest, LoginRequest
from citydash.auth.security import decrypt_sensitive_data, verify_password, verify_dummy_password
from citydash.models.one_time_code import CodePurpose
from tests.conftest import TEST_EMAIL, TEST_PASSWORD, HOME_IP, NEW_IP, signup_payload


def login(auth_service, ip=HOME_IP, password=TEST_PASSWORD, mfa_token=None, email=TEST_EMAIL):
    return auth_service.login(LoginRequest(email=email, password=password, mfaToken=mfa_token), ip, "pytest")


def enable_mfa(test_db, user) -> pyotp.TOTP:
    MFAService(test_db).activate_mfa(user)
    secret = decrypt_sensitive_data(MFAService(test_db).get_enrollment(user.id).secret)
    return pyotp.TOTP(secret)


class TestSignup:
    """Test user registration."""

    def test_signup_returns_tokens_and_summary(self, auth_service):
        result = auth_service.signup(SignupRequest(**signup_payload()), HOME_IP, "pytest")

        assert result["accessToken"]
        assert result["refreshToken"]
        assert result["user"]["email"] == TEST_EMAIL
        assert result["user"]["tenantId"]
        assert "password" not in result["user"]

    def test_signup_stores_hash_and_whitelists_ip(self, auth_service, signed_up_user):
        assert signed_up_user.password != TEST_PASSWORD
        assert verify_password(TEST_PASSWORD, signed_up_user.password)
        assert signed_up_user.login_details.whitelisted_ip == [HOME_IP]
        assert signed_up_user.login_details.failed_attempts == 0
        assert signed_up_user.is_mfa_enabled is False

    def test_creator_owns_new_tenant(self, signed_up_user):
        assert signed_up_user.tenant.name == "Metro Transit"
        assert signed_up_user.tenant.created_by == signed_up_user.id

    def test_password_mismatch(self, auth_service):
        data = SignupRequest(**signup_payload(confirmPassword="Secret2"))

        with pytest.raises(PasswordMismatch):
            auth_service.signup(data, HOME_IP)

    def test_duplicate_email_is_case_insensitive(self, auth_service, signed_up_user):
        data = SignupRequest(**signup_payload(email="A@X.com", organizationName="Other Org"))

        with pytest.raises(DuplicateEmail):
            auth_service.signup(data, HOME_IP)

    def test_join_existing_tenant(self, auth_service, signed_up_user):
        data = SignupRequest(**signup_payload(
            email="b@x.com",
            isOrganizationCreator=False,
            organizationName=None,
            tenantId=signed_up_user.tenant_id,
        ))

        result = auth_service.signup(data, HOME_IP)

        assert result["user"]["tenantId"] == signed_up_user.tenant_id

    def test_unknown_tenant(self, auth_service):
        data = SignupRequest(**signup_payload(isOrganizationCreator=False, organizationName=None, tenantId="nope"))

        with pytest.raises(InvalidOrganization):
            auth_service.signup(data, HOME_IP)

    def test_organization_required(self, auth_service):
        data = SignupRequest(**signup_payload(isOrganizationCreator=False, organizationName=None))

        with pytest.raises(OrganizationRequired):
            auth_service.signup(data, HOME_IP)


class TestPasswordLogin:
    def test_login_from_signup_ip(self, auth_service, signed_up_user):
        result = login(auth_service)

        assert result["user"] == {
            "id": signed_up_user.id,
            "name": "Ada Lovelace",
            "email": TEST_EMAIL,
            "tenantId": signed_up_user.tenant_id,
        }

    def test_login_email_is_case_insensitive(self, auth_service, signed_up_user):
        assert login(auth_service, email="A@X.COM")["user"]["id"] == signed_up_user.id

    def test_login_records_last_login(self, auth_service, signed_up_user):
        login(auth_service)

        assert signed_up_user.login_details.last_login is not None

    def test_unknown_email_and_wrong_password_look_alike(self, auth_service, signed_up_user):
        with pytest.raises(InvalidCredentials) as unknown:
            login(auth_service, email="nobody@x.com")
        with pytest.raises(InvalidCredentials) as wrong:
            login(auth_service, password="Wrong1")

        assert unknown.value.detail == wrong.value.detail
        assert unknown.value.status_code == wrong.value.status_code == 401

    def test_each_failure_costs_one_bcrypt_verify(self, auth_service, signed_up_user):
        with patch("citydash.auth.service.verify_password", wraps=verify_password) as real, \
                patch("citydash.auth.service.verify_dummy_password", wraps=verify_dummy_password) as dummy:
            with pytest.raises(InvalidCredentials):
                login(auth_service, email="nobody@x.com")
            assert (real.call_count, dummy.call_count) == (0, 1)

            with pytest.raises(InvalidCredentials):
                login(auth_service, password="Wrong1")
            assert (real.call_count, dummy.call_count) == (1, 1)

    def test_wrong_password_counts_but_does_not_lock(self, auth_service, test_db, signed_up_user):
        for _ in range(3):
            with pytest.raises(InvalidCredentials):
                login(auth_service, password="Wrong1", ip="6.6.6.6")

        test_db.expire_all()
        assert signed_up_user.login_details.failed_attempts == 3
        assert signed_up_user.login_details.last_failed_ip == "6.6.6.6"
        assert signed_up_user.is_locked is False

        login(auth_service)
        assert signed_up_user.login_details.failed_attempts == 0

    def test_mfa_disabled_user_never_asked_for_token(self, auth_service, signed_up_user):
        assert login(auth_service, mfa_token=None)["accessToken"]


class TestNewIpGuard:
    """a@x.com / Secret1 signed up from 1.1.1.1, then seen from 2.2.2.2."""

    def test_new_ip_locks_account(self, auth_service, test_db, signed_up_user):
        with pytest.raises(NewIpRequiresMfa):
            login(auth_service, ip=NEW_IP)

        test_db.expire_all()
        assert signed_up_user.is_locked is True
        assert signed_up_user.login_details.whitelisted_ip == [HOME_IP]

    def test_locked_account_refused_even_from_known_ip(self, auth_service, signed_up_user):
        with pytest.raises(NewIpRequiresMfa):
            login(auth_service, ip=NEW_IP)

        with pytest.raises(AccountLocked):
            login(auth_service, ip=HOME_IP)

    def test_lock_checked_before_password(self, auth_service, signed_up_user):
        with pytest.raises(NewIpRequiresMfa):
            login(auth_service, ip=NEW_IP)

        with pytest.raises(AccountLocked):
            login(auth_service, password="Wrong1")

    def test_emailed_challenge_unlocks_and_whitelists(self, auth_service, code_delivery, test_db, signed_up_user):
        with pytest.raises(NewIpRequiresMfa):
            login(auth_service, ip=NEW_IP)

        auth_service.request_mfa_challenge(TEST_EMAIL, TEST_PASSWORD, NEW_IP)
        code = code_delivery.last_code(CodePurpose.IP_CHALLENGE)
        auth_service.verify_mfa_challenge(TEST_EMAIL, TEST_PASSWORD, code, NEW_IP)

        test_db.expire_all()
        assert signed_up_user.is_locked is False
        assert signed_up_user.login_details.whitelisted_ip == [HOME_IP, NEW_IP]
        assert login(auth_service, ip=NEW_IP)["accessToken"]

    def test_challenge_code_is_single_use(self, auth_service, code_delivery, signed_up_user):
        auth_service.request_mfa_challenge(TEST_EMAIL, TEST_PASSWORD, NEW_IP)
        code = code_delivery.last_code(CodePurpose.IP_CHALLENGE)
        auth_service.verify_mfa_challenge(TEST_EMAIL, TEST_PASSWORD, code, NEW_IP)

        with pytest.raises(InvalidMfaToken):
            auth_service.verify_mfa_challenge(TEST_EMAIL, TEST_PASSWORD, code, "3.3.3.3")

    def test_wrong_challenge_code_keeps_lock(self, auth_service, code_delivery, test_db, signed_up_user):
        with pytest.raises(NewIpRequiresMfa):
            login(auth_service, ip=NEW_IP)
        auth_service.request_mfa_challenge(TEST_EMAIL, TEST_PASSWORD, NEW_IP)
        code = code_delivery.last_code(CodePurpose.IP_CHALLENGE)
        wrong = "000000" if code != "000000" else "111111"

        with pytest.raises(InvalidMfaToken):
            auth_service.verify_mfa_challenge(TEST_EMAIL, TEST_PASSWORD, wrong, NEW_IP)

        test_db.expire_all()
        assert signed_up_user.is_locked is True

    def test_challenge_requires_password(self, auth_service, signed_up_user):
        with pytest.raises(InvalidCredentials):
            auth_service.request_mfa_challenge(TEST_EMAIL, "Wrong1", NEW_IP)


class TestMfaLogin:
    """Login for users with TOTP enabled."""

    def test_missing_token(self, auth_service, test_db, signed_up_user):
        enable_mfa(test_db, signed_up_user)

        with pytest.raises(MfaRequired):
            login(auth_service)

    def test_current_code(self, auth_service, test_db, signed_up_user):
        totp = enable_mfa(test_db, signed_up_user)

        assert login(auth_service, mfa_token=totp.now())["accessToken"]

    def test_wrong_code(self, auth_service, test_db, signed_up_user):
        totp = enable_mfa(test_db, signed_up_user)
        wrong = "000000" if totp.now() != "000000" else "111111"

        with pytest.raises(InvalidMfaToken):
            login(auth_service, mfa_token=wrong)

    def test_enabled_without_enrollment(self, auth_service, test_db, signed_up_user):
        signed_up_user.is_mfa_enabled = True
        test_db.commit()

        with pytest.raises(MfaNotConfigured):
            login(auth_service, mfa_token="123456")

    def test_one_code_satisfies_mfa_and_new_ip(self, auth_service, test_db, signed_up_user):
        totp = enable_mfa(test_db, signed_up_user)

        assert login(auth_service, ip=NEW_IP, mfa_token=totp.now())["accessToken"]

        test_db.expire_all()
        assert signed_up_user.is_locked is False
        assert NEW_IP in signed_up_user.login_details.whitelisted_ip

    def test_new_ip_without_token_is_mfa_required(self, auth_service, test_db, signed_up_user):
        enable_mfa(test_db, signed_up_user)

        with pytest.raises(MfaRequired):
            login(auth_service, ip=NEW_IP)

        test_db.expire_all()
        assert signed_up_user.is_locked is False

    def test_disabled_mfa_with_enrollment_accepts_token_for_new_ip(self, auth_service, test_db, signed_up_user):
        totp = enable_mfa(test_db, signed_up_user)
        MFAService(test_db).deactivate_mfa(signed_up_user)

        assert login(auth_service, ip=NEW_IP, mfa_token=totp.now())["accessToken"]

    def test_disabled_mfa_with_enrollment_rejects_bad_token_for_new_ip(self, auth_service, test_db, signed_up_user):
        totp = enable_mfa(test_db, signed_up_user)
        MFAService(test_db).deactivate_mfa(signed_up_user)
        wrong = "000000" if totp.now() != "000000" else "111111"

        with pytest.raises(InvalidMfaToken):
            login(auth_service, ip=NEW_IP, mfa_token=wrong)

    def test_totp_challenge_unlocks(self, auth_service, code_delivery, test_db, signed_up_user):
        totp = enable_mfa(test_db, signed_up_user)
        MFAService(test_db).deactivate_mfa(signed_up_user)
        with pytest.raises(NewIpRequiresMfa):
            login(auth_service, ip=NEW_IP)

        message = auth_service.request_mfa_challenge(TEST_EMAIL, TEST_PASSWORD, NEW_IP)
        auth_service.verify_mfa_challenge(TEST_EMAIL, TEST_PASSWORD, totp.now(), NEW_IP)

        assert "authenticator" in message
        assert code_delivery.sent == []
        test_db.expire_all()
        assert signed_up_user.is_locked is False
