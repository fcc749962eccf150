"""Time-based one-time passwords (RFC 6238, 30 second steps, 6 digits)."""

import base64
import io
import re
from dataclasses import dataclass
from typing import Optional

import pyotp
import qrcode

from app.config import settings

_CODE_RE = re.compile(r"[0-9]{6}")


@dataclass(frozen=True)
class TotpEnrollment:
    secret: str
    provisioning_uri: str


def generate_secret(label: str) -> TotpEnrollment:
    """
    Generate a TOTP secret for 2FA

    Args:
        label: Account name shown in the authenticator app (usually the email)

    Returns:
        Base32 secret and its otpauth:// provisioning URI
    """
    secret = pyotp.random_base32(length=settings.TOTP_SECRET_LENGTH)
    uri = pyotp.TOTP(secret).provisioning_uri(name=label, issuer_name=settings.TOTP_ISSUER)
    return TotpEnrollment(secret=secret, provisioning_uri=uri)


def current_code(secret: str) -> str:
    return pyotp.TOTP(secret).now()


def is_code_format(code: Optional[str]) -> bool:
    return bool(code) and _CODE_RE.fullmatch(code) is not None


def verify(secret: str, code: Optional[str], window: Optional[int] = None) -> bool:
    """
    Verify a TOTP code

    Args:
        secret: TOTP secret
        code: 6-digit code from authenticator app
        window: Steps accepted on either side of the current one

    Returns:
        True if code is valid
    """
    if not secret or not is_code_format(code):
        return False
    if window is None:
        window = settings.TOTP_VALID_WINDOW
    return pyotp.TOTP(secret).verify(code, valid_window=window)


def qr_data_uri(provisioning_uri: str) -> str:
    """Render the provisioning URI as a PNG QR code data URI."""
    image = qrcode.make(provisioning_uri)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"
