"""
Pydantic Models for the TOTPGuard API.

Request and response models for all API endpoints.
"""
from datetime import datetime
from typing import Optional, Dict
from pydantic import BaseModel, Field, ConfigDict


# ============================================
# TOTP Models
# ============================================

class SecretRequest(BaseModel):
    """
    Secret generation request.

    When account_name is given, the response also carries the
    provisioning URI and a QR code for authenticator apps.
    """
    account_name: Optional[str] = Field(None, max_length=128, description="Label shown in the authenticator app")


class SecretResponse(BaseModel):
    """Freshly generated secret. Not stored until enabled."""
    secret: str
    provisioning_uri: Optional[str] = None
    qr_code_base64: Optional[str] = None


class EnableRequest(BaseModel):
    """
    Enable TOTP request.

    Secret must be 10-16 base32 characters (A-Z, 2-7, case-insensitive).
    """
    secret: str = Field(..., max_length=64, description="Base32 secret shared with the authenticator app")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "secret": "JBSWY3DPEHPK3PXP"
            }
        }
    )


class VerifyRequest(BaseModel):
    """TOTP verification request."""
    code: str = Field(..., max_length=16, description="6-digit code from the authenticator app")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "code": "123456"
            }
        }
    )


class VerifyResponse(BaseModel):
    """TOTP verification result."""
    success: bool
    status: str = Field(..., description="success, invalid_code or not_enabled")
    verified: bool
    failed_attempts: int
    retry_after_seconds: int = Field(0, description="Seconds until the lockout clears, 0 if not locked")


class TOTPStatusResponse(BaseModel):
    """Current TOTP state of an identity."""
    identity: str
    enabled: bool
    verified: bool
    has_secret: bool
    failed_attempts: int
    locked_out: bool
    retry_after_seconds: int


class StoredSecretResponse(BaseModel):
    """Stored secret of an identity."""
    identity: str
    secret: str


# ============================================
# Health & Error Models
# ============================================

class HealthStatus(BaseModel):
    """Health check response."""
    status: str
    version: str
    services: Dict[str, str]
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    code: Optional[str] = None
