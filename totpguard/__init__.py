"""
TOTPGuard - Time-based One-Time Password second factor.

Issues and verifies TOTP codes (RFC 4226 / RFC 6238) for per-identity
authentication and locks out identities after repeated failed attempts.

This package provides the base32 codec, the HOTP/TOTP engine, secret
generation, the per-identity attempt guard and an optional HTTP surface.
"""

__version__ = "1.0.0"
__author__ = "TOTPGuard Team"
