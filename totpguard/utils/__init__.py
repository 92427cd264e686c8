"""
Shared utilities for TOTPGuard.

This package provides:
- Log-safe masking of secrets and codes
"""
from .secrets import mask_secret, mask_code

__all__ = ["mask_secret", "mask_code"]
