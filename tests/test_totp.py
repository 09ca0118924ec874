"""Tests for the TOTP engine."""
import base64
import time

import pyotp
import pytest

from citydash.services.totp_service import TOTPService, PNG_DATA_URL_PREFIX


@pytest.fixture
def totp_service():
    return TOTPService(issuer="CityDash", valid_window=1)


class TestSecretGeneration:
    def test_generate_secret(self, totp_service):
        secret, data_url = totp_service.generate_secret("a@x.com")

        assert len(secret) == 32
        base64.b32decode(secret)
        assert data_url.startswith(PNG_DATA_URL_PREFIX)

    def test_secrets_are_unique(self, totp_service):
        first, _ = totp_service.generate_secret("a@x.com")
        second, _ = totp_service.generate_secret("a@x.com")

        assert first != second

    def test_image_bytes_is_png(self, totp_service):
        _, data_url = totp_service.generate_secret("a@x.com")

        assert totp_service.image_bytes(data_url).startswith(b"\x89PNG")


class TestVerification:
    """Codes are accepted within one 30 second step either side."""

    def test_current_code(self, totp_service):
        secret = pyotp.random_base32()

        assert totp_service.verify(secret, pyotp.TOTP(secret).now()) is True

    def test_previous_step_code(self, totp_service):
        secret = pyotp.random_base32()
        code = pyotp.TOTP(secret).at(time.time() - 30)

        assert totp_service.verify(secret, code) is True

    def test_stale_code(self, totp_service):
        secret = pyotp.random_base32()
        totp = pyotp.TOTP(secret)
        now = time.time()
        stale = totp.at(now - 120)
        if stale in {totp.at(now - 30), totp.now(), totp.at(now + 30)}:
            pytest.skip("stale code collides with a code inside the window")

        assert totp_service.verify(secret, stale) is False

    @pytest.mark.parametrize("code", ["", "12345", "1234567", "abcdef", "12 456", None])
    def test_malformed_codes_rejected(self, totp_service, code):
        assert totp_service.verify(pyotp.random_base32(), code) is False
