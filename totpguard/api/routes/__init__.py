"""
API Routes for TOTPGuard.
"""
from .identities import router as identities_router
from .health import router as health_router

__all__ = [
    "identities_router",
    "health_router",
]
