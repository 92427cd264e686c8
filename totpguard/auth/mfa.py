"""
Secret generation and enrollment helpers for TOTPGuard.

Generates fresh TOTP secrets from the operating system CSPRNG and builds
the otpauth:// provisioning URI and QR code that authenticator apps
(Google Authenticator, Authy, ...) scan during enrollment.
"""
import base64
import io
import logging
import secrets
from typing import Optional, Tuple

import pyotp
import qrcode

from .base32 import SECRET_LENGTH, encode_secret_bytes
from .errors import RngUnavailable
from .totp import CODE_DIGITS, DEFAULT_TIME_STEP

logger = logging.getLogger(__name__)


def generate_secret() -> str:
    """
    Generate a new TOTP secret.

    Draws 16 bytes from the OS entropy source and maps each one onto the
    base32 alphabet. There is no fallback to a non-cryptographic RNG.

    Returns:
        Base32-encoded secret (16 characters).

    Raises:
        RngUnavailable: If the entropy source fails.
    """
    try:
        random_bytes = secrets.token_bytes(SECRET_LENGTH)
    except (NotImplementedError, OSError) as e:
        logger.error(f"Secure random source unavailable: {e}")
        raise RngUnavailable("Secure random source unavailable") from e

    return encode_secret_bytes(random_bytes)


def get_provisioning_uri(
    secret: str,
    account_name: str,
    issuer: str = "TOTPGuard",
    time_step: int = DEFAULT_TIME_STEP,
) -> str:
    """
    Generate a provisioning URI for TOTP apps.

    This URI can be encoded as a QR code for easy scanning.

    Args:
        secret: Base32-encoded TOTP secret.
        account_name: Label displayed in the authenticator app.
        issuer: Application name displayed in the authenticator app.
        time_step: Seconds per code.

    Returns:
        otpauth:// URI string.
    """
    totp = pyotp.TOTP(secret, digits=CODE_DIGITS, interval=time_step)
    return totp.provisioning_uri(name=account_name, issuer_name=issuer)


def generate_qr_code(uri: str) -> bytes:
    """
    Generate a QR code image for the provisioning URI.

    Args:
        uri: otpauth:// provisioning URI.

    Returns:
        PNG image bytes.
    """
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(uri)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


def generate_qr_code_base64(uri: str) -> str:
    """Generate a base64 data URI of the QR code for embedding in HTML."""
    png_bytes = generate_qr_code(uri)
    b64 = base64.b64encode(png_bytes).decode('utf-8')
    return f"data:image/png;base64,{b64}"


def setup_totp(
    account_name: Optional[str] = None,
    issuer: str = "TOTPGuard",
    time_step: int = DEFAULT_TIME_STEP,
) -> Tuple[str, Optional[str], Optional[str]]:
    """
    Generate a secret and, when an account name is given, its enrollment material.

    Nothing is stored; the caller enables the secret once the user has
    confirmed it.

    Args:
        account_name: Label for the authenticator app, or None to skip
            the URI and QR code.
        issuer: Application name.
        time_step: Seconds per code.

    Returns:
        Tuple of (secret, provisioning_uri, qr_code_base64).
    """
    secret = generate_secret()
    if not account_name:
        return secret, None, None

    uri = get_provisioning_uri(secret, account_name, issuer, time_step)
    qr_base64 = generate_qr_code_base64(uri)

    return secret, uri, qr_base64
