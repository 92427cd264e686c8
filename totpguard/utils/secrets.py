"""
Log-safe helpers for TOTP secrets and codes.

Usage:
    from totpguard.utils.secrets import mask_secret

    logger.info(f"Secret stored: {mask_secret(secret)}")
"""
from typing import Optional


def mask_secret(secret: Optional[str], visible_chars: int = 2) -> str:
    """
    Mask a secret for safe logging.

    Args:
        secret: The secret to mask
        visible_chars: Number of characters to show at start and end

    Returns:
        Masked string like "JB...XP"
    """
    if not secret or len(secret) <= visible_chars * 4:
        return "***"
    return f"{secret[:visible_chars]}...{secret[-visible_chars:]}"


def mask_code(code: Optional[str]) -> str:
    """Mask a submitted code, keeping only its length visible."""
    if not code:
        return "<empty>"
    return "*" * min(len(code), 16)
