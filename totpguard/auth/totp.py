"""
HOTP/TOTP engine (RFC 4226 / RFC 6238).

Stateless: every function operates on the values passed in and can be
shared between threads without synchronisation. Codes are 6 digits,
HMAC-SHA1, matching the defaults of standard authenticator apps.

Secrets are decoded with the tolerant codec in base32.py and the raw key is
handed to pyotp in canonical base32, so separators and unpadded secrets
from authenticator apps still work.
"""
import base64
import logging
from typing import Optional

import pyotp
from pyotp.utils import strings_equal

from .base32 import decode
from .errors import DecodeFailure

logger = logging.getLogger(__name__)

DEFAULT_TIME_STEP = 30
DEFAULT_WINDOW = 1
CODE_DIGITS = 6

_MAX_COUNTER = 2 ** 64 - 1


def is_valid_code(code: Optional[str]) -> bool:
    """Return True if code is exactly six ASCII digits."""
    return (
        isinstance(code, str)
        and len(code) == CODE_DIGITS
        and code.isascii()
        and code.isdigit()
    )


def time_counter(timestamp: int, time_step: int = DEFAULT_TIME_STEP) -> int:
    """
    Derive the moving factor from a Unix timestamp.

    Args:
        timestamp: Seconds since the epoch.
        time_step: Seconds covered by each counter value.

    Returns:
        floor(timestamp / time_step)
    """
    if time_step <= 0:
        raise ValueError("time_step must be positive")
    return int(timestamp) // time_step


def _otp_for_key(key: bytes) -> pyotp.HOTP:
    return pyotp.HOTP(base64.b32encode(key).decode("ascii"), digits=CODE_DIGITS)


def hotp(key: bytes, counter: int) -> str:
    """
    Derive a 6-digit HOTP code from a raw key and a counter.

    Args:
        key: Raw key bytes.
        counter: Unsigned 64-bit counter.

    Returns:
        Zero-padded 6-digit code.
    """
    return _otp_for_key(key).at(counter & _MAX_COUNTER)


def _decode_key(secret: str) -> bytes:
    key = decode(secret)
    if not key:
        raise DecodeFailure("Secret decodes to an empty key")
    return key


def generate_totp(secret: str, timestamp: int, time_step: int = DEFAULT_TIME_STEP) -> str:
    """
    Generate the TOTP code for a secret at a given time.

    Args:
        secret: Base32-encoded secret.
        timestamp: Seconds since the epoch.
        time_step: Seconds per counter value (default 30).

    Returns:
        6-digit code, or an empty string if the secret cannot be decoded
        or the time step is not positive.
    """
    if time_step <= 0:
        logger.debug(f"Refusing to generate with time_step={time_step}")
        return ""

    try:
        key = _decode_key(secret)
    except DecodeFailure as e:
        logger.debug(f"Secret decode failed: {e}")
        return ""

    return hotp(key, time_counter(timestamp, time_step))


def verify_totp(
    secret: str,
    code: str,
    timestamp: int,
    time_step: int = DEFAULT_TIME_STEP,
    window: int = DEFAULT_WINDOW,
) -> bool:
    """
    Verify a submitted code against a secret.

    Accepts codes generated up to `window` steps before or after
    `timestamp` to tolerate clock drift. Offsets are tried from -window to
    +window; all matches are equally accepted. Never raises: a bad secret,
    code, step or window is simply a non-match.

    Args:
        secret: Base32-encoded secret.
        code: 6-digit code submitted by the user.
        timestamp: Verifier's current Unix time in seconds.
        time_step: Seconds per counter value (default 30).
        window: Steps checked on either side of now (default 1 = +-30s).

    Returns:
        True if the code matches any step in the window, False otherwise.
    """
    if not secret or not is_valid_code(code):
        return False
    if time_step <= 0 or window < 0:
        logger.debug(f"Rejecting verification with time_step={time_step}, window={window}")
        return False

    try:
        key = _decode_key(secret)
    except DecodeFailure as e:
        logger.debug(f"Secret decode failed during verification: {e}")
        return False

    otp = _otp_for_key(key)
    for offset in range(-window, window + 1):
        adjusted = int(timestamp) + offset * time_step
        # No counter exists before the epoch
        if adjusted < 0:
            continue
        counter = time_counter(adjusted, time_step) & _MAX_COUNTER
        if strings_equal(code, otp.at(counter)):
            return True

    return False
