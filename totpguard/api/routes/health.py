"""
Health Check Endpoints.

Provides health status for the API and its dependencies.
"""
import logging
import secrets
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from ..models import HealthStatus
from ..deps import get_manager
from ... import __version__
from ...auth.manager import TOTPManager

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", response_model=HealthStatus)
async def health_check(manager: TOTPManager = Depends(get_manager)):
    """
    Basic health check endpoint.

    Reports the identity registry size and whether the secure random
    source is usable (secret generation depends on it).
    """
    services = {}
    overall_healthy = True

    # Check entropy source
    try:
        secrets.token_bytes(1)
        services["entropy"] = "healthy"
    except (NotImplementedError, OSError) as e:
        logger.error(f"Entropy source check failed: {e}")
        services["entropy"] = f"unhealthy: {str(e)}"
        overall_healthy = False

    services["registry"] = f"in-memory ({len(manager)}/{manager.settings.max_identities} identities)"

    return HealthStatus(
        status="healthy" if overall_healthy else "unhealthy",
        version=__version__,
        services=services,
        timestamp=datetime.now(timezone.utc),
    )
