"""
TOTPGuard REST API.

FastAPI-based REST API exposing TOTP enrollment and verification.
"""
from .main import app, create_app

__all__ = ["app", "create_app"]
