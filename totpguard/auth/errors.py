"""
Error types for TOTPGuard.

Verification paths never raise these to the caller: decode failures and
malformed codes resolve to a non-match. They are raised by enrollment,
secret generation and registry operations.
"""
from typing import Optional


class TOTPError(Exception):
    """Base class for all TOTPGuard errors."""


class InvalidSecretFormat(TOTPError, ValueError):
    """Secret has the wrong length or contains non-base32 characters."""


class DecodeFailure(TOTPError, ValueError):
    """Secret string could not be decoded as base32."""


class MalformedCode(TOTPError, ValueError):
    """Submitted code is not exactly six ASCII digits."""


class RateLimited(TOTPError):
    """Verification attempts are temporarily blocked for an identity."""

    def __init__(self, retry_after_seconds: int, message: Optional[str] = None):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            message or f"Too many failed attempts. Try again in {retry_after_seconds} seconds."
        )


class RngUnavailable(TOTPError):
    """The operating system entropy source could not provide random bytes."""


class CapacityExceeded(TOTPError):
    """The identity registry is full."""

    def __init__(self, max_identities: int):
        self.max_identities = max_identities
        super().__init__(f"Identity registry is full ({max_identities} identities)")


class UnknownIdentity(TOTPError, KeyError):
    """No authentication state exists for the requested identity."""

    def __init__(self, identity: str):
        self.identity = identity
        super().__init__(identity)

    def __str__(self) -> str:
        return f"Unknown identity: {self.identity}"
