"""
FastAPI Dependencies for the TOTPGuard API.

Provides:
- Settings
- The process-wide identity registry
"""
import logging
from typing import Optional

from ..auth.manager import TOTPManager
from ..config import TOTPSettings, get_settings

logger = logging.getLogger(__name__)


# ============================================
# Identity Registry
# ============================================

_manager: Optional[TOTPManager] = None


def get_manager() -> TOTPManager:
    """
    Get the singleton TOTP manager.

    State is held in memory only and is lost on restart.
    """
    global _manager

    if _manager is None:
        settings = get_settings()
        _manager = TOTPManager(settings)
        logger.info(
            f"TOTP manager initialised (step={settings.time_step}s, window={settings.window}, "
            f"max_identities={settings.max_identities})"
        )
    return _manager


def get_totp_settings() -> TOTPSettings:
    """Get TOTP settings."""
    return get_settings()

