"""
TOTPGuard REST API - Main Application.

FastAPI service for TOTP second-factor enrollment and verification.
State is per process, so run a single worker:

    uvicorn totpguard.api.main:app --host 0.0.0.0 --port 8000
"""
import os
import time
import uuid
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from .. import __version__
from ..auth.errors import TOTPError
from .deps import get_manager
from .routes import identities_router, health_router

API_TITLE = "TOTPGuard API"
API_VERSION = os.getenv("APP_VERSION", __version__)

# Applied to every response; the API only serves JSON
SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Cache-Control": "no-store",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}


class RequestIdFilter(logging.Filter):
    """Default request_id for records logged outside a request."""

    def filter(self, record):
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        return True


def configure_logging() -> None:
    """Set up root logging from LOG_LEVEL / LOG_FORMAT."""
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    fmt = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s",
    )
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=fmt)
    # On handlers, so records from module loggers are covered too
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())


configure_logging()
logger = logging.getLogger(__name__)


def _error_body(error: str, code: str, detail=None, **extra) -> dict:
    return {"error": error, "detail": detail, "code": code, **extra}


@asynccontextmanager
async def lifespan(app: FastAPI):
    manager = get_manager()
    logger.info(
        f"TOTPGuard API v{API_VERSION} ready "
        f"(capacity {manager.settings.max_identities} identities)"
    )
    yield
    logger.info(f"TOTPGuard API stopping with {len(manager)} identities in memory")


def create_app() -> FastAPI:
    """Build the FastAPI application with middleware, handlers and routes."""
    app = FastAPI(
        title=API_TITLE,
        description="Issues and verifies RFC 6238 one-time passwords per identity.",
        version=API_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000").split(","),
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time-Ms"] = f"{elapsed_ms:.2f}"
        response.headers.update(SECURITY_HEADERS)

        if request.url.path != "/health":
            logger.info(
                f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms",
                extra={"request_id": request_id},
            )
        return response

    @app.exception_handler(RequestValidationError)
    async def on_validation_error(request: Request, exc: RequestValidationError):
        detail = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_body("Validation Error", "VALIDATION_ERROR", detail),
        )

    @app.exception_handler(TOTPError)
    async def on_totp_error(request: Request, exc: TOTPError):
        logger.warning(
            f"Unmapped {type(exc).__name__}: {exc}",
            extra={"request_id": getattr(request.state, "request_id", "-")},
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body(type(exc).__name__, "TOTP_ERROR", str(exc)),
        )

    @app.exception_handler(Exception)
    async def on_unexpected_error(request: Request, exc: Exception):
        request_id = getattr(request.state, "request_id", "-")
        logger.exception(f"Unhandled {type(exc).__name__}", extra={"request_id": request_id})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body("Internal Server Error", "INTERNAL_ERROR", request_id=request_id),
        )

    app.include_router(health_router)
    app.include_router(identities_router)

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        app,
        host=os.getenv("API_HOST", "127.0.0.1"),
        port=int(os.getenv("API_PORT", "8000")),
        workers=1,
    )
