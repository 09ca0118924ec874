"""TOTP secret generation, enrollment QR rendering and code verification."""
import base64
import io
from typing import Tuple

import pyotp
import qrcode

from ..config.auth_config import TOTP_ISSUER, TOTP_VALID_WINDOW

PNG_DATA_URL_PREFIX = "data:image/png;base64,"


class TOTPService:
    """Time-based one-time password engine."""

    CODE_LENGTH = 6

    def __init__(self, issuer: str = TOTP_ISSUER, valid_window: int = TOTP_VALID_WINDOW):
        self.issuer = issuer
        self.valid_window = valid_window

    def generate_secret(self, account_label: str) -> Tuple[str, str]:
        """Create a base32 secret and a PNG data URL of its provisioning QR code."""
        secret = pyotp.random_base32()
        provisioning_uri = pyotp.TOTP(secret).provisioning_uri(
            name=account_label,
            issuer_name=self.issuer
        )
        return secret, self.render_qr_data_url(provisioning_uri)

    def render_qr_data_url(self, payload: str) -> str:
        qr = qrcode.QRCode(version=1, box_size=10, border=5)
        qr.add_data(payload)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        img_buffer = io.BytesIO()
        img.save(img_buffer, format="PNG")
        return PNG_DATA_URL_PREFIX + base64.b64encode(img_buffer.getvalue()).decode()

    def verify(self, secret: str, code: str, valid_window: int = None) -> bool:
        """Check a 6-digit code allowing the configured clock drift."""
        if not secret or not code:
            return False
        code = code.strip()
        if len(code) != self.CODE_LENGTH or not code.isdigit():
            return False
        window = self.valid_window if valid_window is None else valid_window
        return pyotp.TOTP(secret).verify(code, valid_window=window)

    @staticmethod
    def image_bytes(data_url: str) -> bytes:
        """Decode a stored PNG data URL back into raw image bytes."""
        _, _, encoded = data_url.partition(",")
        return base64.b64decode(encoded)
