"""
TOTP Endpoints.

Provides secret generation, enable/disable, verification, status and
reset for identities. Identities are created on first use.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ..models import (
    SecretRequest,
    SecretResponse,
    EnableRequest,
    VerifyRequest,
    VerifyResponse,
    TOTPStatusResponse,
    StoredSecretResponse,
    ErrorResponse,
)
from ..deps import get_manager, get_totp_settings
from ...auth.errors import (
    CapacityExceeded,
    InvalidSecretFormat,
    MalformedCode,
    RateLimited,
    RngUnavailable,
    UnknownIdentity,
)
from ...auth.manager import TOTPManager
from ...auth.mfa import get_provisioning_uri, generate_qr_code_base64
from ...config import TOTPSettings

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/identities", tags=["TOTP"])


def _capacity_error(e: CapacityExceeded) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=str(e),
    )


def _not_found(e: UnknownIdentity) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=str(e),
    )


@router.post(
    "/{identity}/totp/secret",
    response_model=SecretResponse,
    responses={
        503: {"model": ErrorResponse, "description": "Secure random source unavailable"},
    },
)
async def generate_secret(
    identity: str,
    request: Optional[SecretRequest] = None,
    manager: TOTPManager = Depends(get_manager),
    settings: TOTPSettings = Depends(get_totp_settings),
):
    """
    Generate a new secret for an identity.

    The secret is NOT stored. Call PUT /identities/{identity}/totp with it
    once the user has added it to their authenticator app.
    """
    try:
        secret = manager.generate_secret(identity)
    except RngUnavailable as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )

    logger.info(f"Secret generated for identity: {identity}")

    account_name = request.account_name if request else None
    if not account_name:
        return SecretResponse(secret=secret)

    uri = get_provisioning_uri(
        secret,
        account_name,
        issuer=settings.issuer,
        time_step=settings.time_step,
    )
    return SecretResponse(
        secret=secret,
        provisioning_uri=uri,
        qr_code_base64=generate_qr_code_base64(uri),
    )


@router.put(
    "/{identity}/totp",
    response_model=TOTPStatusResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid secret format"},
        503: {"model": ErrorResponse, "description": "Identity registry full"},
    },
)
async def enable_totp(
    identity: str,
    request: EnableRequest,
    manager: TOTPManager = Depends(get_manager),
):
    """
    Enable TOTP for an identity.

    Replaces any previous secret and clears verification and failed attempts.
    """
    try:
        manager.enable(identity, request.secret)
    except InvalidSecretFormat as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except CapacityExceeded as e:
        raise _capacity_error(e)

    return _status_response(manager, identity)


@router.delete("/{identity}/totp", status_code=status.HTTP_204_NO_CONTENT)
async def disable_totp(
    identity: str,
    manager: TOTPManager = Depends(get_manager),
):
    """
    Disable TOTP for an identity and drop its secret.

    Idempotent.
    """
    manager.disable(identity)
    return None


@router.post(
    "/{identity}/totp/verify",
    response_model=VerifyResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Code is not 6 digits"},
        429: {"model": ErrorResponse, "description": "Too many failed attempts"},
    },
)
async def verify_code(
    identity: str,
    request: VerifyRequest,
    manager: TOTPManager = Depends(get_manager),
):
    """
    Verify a TOTP code for an identity.

    Verification is blocked for 60 seconds after 3 failed attempts.
    """
    result = manager.verify(identity, request.code)

    try:
        result.raise_for_status()
    except RateLimited as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(e),
            headers={"Retry-After": str(e.retry_after_seconds)},
        )
    except MalformedCode as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    return VerifyResponse(
        success=result.success,
        status=result.status.value,
        verified=manager.is_verified(identity),
        failed_attempts=result.failed_attempts,
        retry_after_seconds=result.retry_after_seconds,
    )


@router.get(
    "/{identity}/totp",
    response_model=TOTPStatusResponse,
    responses={404: {"model": ErrorResponse, "description": "Unknown identity"}},
)
async def get_totp_status(
    identity: str,
    manager: TOTPManager = Depends(get_manager),
):
    """Get the TOTP state of an identity."""
    return _status_response(manager, identity)


@router.get(
    "/{identity}/totp/secret",
    response_model=StoredSecretResponse,
    responses={404: {"model": ErrorResponse, "description": "No secret stored"}},
)
async def get_stored_secret(
    identity: str,
    manager: TOTPManager = Depends(get_manager),
):
    """Get the stored secret of an identity (for display or external storage)."""
    secret = manager.get_secret(identity)
    if secret is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No secret stored for this identity",
        )
    return StoredSecretResponse(identity=identity, secret=secret)


@router.post(
    "/{identity}/totp/reset",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse, "description": "Unknown identity"}},
)
async def reset_verification(
    identity: str,
    manager: TOTPManager = Depends(get_manager),
):
    """
    Reset verification status (e.g. on re-login).

    Keeps the secret and enablement; clears failed attempts.
    """
    try:
        manager.reset_verification(identity)
    except UnknownIdentity as e:
        raise _not_found(e)
    return None


@router.delete("/{identity}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_identity(
    identity: str,
    manager: TOTPManager = Depends(get_manager),
):
    """Remove all TOTP state for an identity."""
    manager.remove(identity)
    return None


def _status_response(manager: TOTPManager, identity: str) -> TOTPStatusResponse:
    try:
        state, retry_after = manager.status(identity)
    except UnknownIdentity as e:
        raise _not_found(e)

    return TOTPStatusResponse(
        identity=identity,
        enabled=state.enabled,
        verified=state.verified,
        has_secret=state.has_secret,
        failed_attempts=state.failed_attempts,
        locked_out=retry_after > 0,
        retry_after_seconds=retry_after,
    )
