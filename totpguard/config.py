"""
Configuration for TOTPGuard.

Settings are read from environment variables once and cached.

Usage:
    from totpguard.config import get_settings

    settings = get_settings()
    settings.time_step  # 30
"""
import os
import logging
from dataclasses import dataclass
from functools import lru_cache

logger = logging.getLogger(__name__)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class TOTPSettings:
    """TOTP and lockout settings. Must match the issuer's authenticator configuration."""
    time_step: int = 30
    window: int = 1
    max_failed_attempts: int = 3
    rate_limit_seconds: int = 60
    max_identities: int = 1000
    issuer: str = "TOTPGuard"

    def __post_init__(self):
        if self.time_step <= 0:
            raise ValueError("TOTP_TIME_STEP must be positive")
        if self.window < 0:
            raise ValueError("TOTP_WINDOW must not be negative")
        if self.max_failed_attempts <= 0:
            raise ValueError("TOTP_MAX_FAILED_ATTEMPTS must be positive")
        if self.rate_limit_seconds < 0:
            raise ValueError("TOTP_RATE_LIMIT_SECONDS must not be negative")
        if self.max_identities <= 0:
            raise ValueError("TOTP_MAX_IDENTITIES must be positive")

    @classmethod
    def from_env(cls) -> "TOTPSettings":
        """Build settings from TOTP_* environment variables."""
        return cls(
            time_step=_int_env("TOTP_TIME_STEP", 30),
            window=_int_env("TOTP_WINDOW", 1),
            max_failed_attempts=_int_env("TOTP_MAX_FAILED_ATTEMPTS", 3),
            rate_limit_seconds=_int_env("TOTP_RATE_LIMIT_SECONDS", 60),
            max_identities=_int_env("TOTP_MAX_IDENTITIES", 1000),
            issuer=os.getenv("TOTP_ISSUER", "TOTPGuard"),
        )


@lru_cache(maxsize=1)
def get_settings() -> TOTPSettings:
    """Get cached settings. Raises ValueError if the environment is invalid."""
    settings = TOTPSettings.from_env()
    logger.debug(f"Loaded settings: {settings}")
    return settings
