"""
TOTP second-factor core for TOTPGuard.

This package provides:
- Base32 secret codec
- HOTP/TOTP code generation and windowed verification
- Secret generation and enrollment (provisioning URI, QR code)
- Per-identity attempt guard with lockout
- Identity registry
"""
from .base32 import decode, encode_secret_bytes, is_valid_secret
from .errors import (
    TOTPError,
    InvalidSecretFormat,
    DecodeFailure,
    MalformedCode,
    RateLimited,
    RngUnavailable,
    CapacityExceeded,
    UnknownIdentity,
)
from .guard import AttemptGuard, IdentityAuthState, MAX_FAILED_ATTEMPTS, RATE_LIMIT_SECONDS
from .manager import TOTPManager, VerifyResult, VerifyStatus
from .mfa import generate_secret, get_provisioning_uri, generate_qr_code_base64, setup_totp
from .totp import generate_totp, verify_totp, time_counter, hotp, is_valid_code

__all__ = [
    "decode",
    "encode_secret_bytes",
    "is_valid_secret",
    "TOTPError",
    "InvalidSecretFormat",
    "DecodeFailure",
    "MalformedCode",
    "RateLimited",
    "RngUnavailable",
    "CapacityExceeded",
    "UnknownIdentity",
    "AttemptGuard",
    "IdentityAuthState",
    "MAX_FAILED_ATTEMPTS",
    "RATE_LIMIT_SECONDS",
    "TOTPManager",
    "VerifyResult",
    "VerifyStatus",
    "generate_secret",
    "get_provisioning_uri",
    "generate_qr_code_base64",
    "setup_totp",
    "generate_totp",
    "verify_totp",
    "time_counter",
    "hotp",
    "is_valid_code",
]
