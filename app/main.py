import asyncio
import logging
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded as SlowapiRateLimitExceeded

from app.config import settings
from app.core.errors import (
    SecurityError, ConfigurationError, DecryptionError, RateLimitExceeded
)
from app.modules.auth import routes as auth_routes
from app.modules.security import routes as security_routes
from app.modules.security.cleanup_scheduler import rate_limit_cleanup_loop

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    redirect_slashes=False,
)
app.state.limiter = limiter
app.add_exception_handler(SlowapiRateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    retry_after = exc.retry_after_seconds(datetime.now(timezone.utc))
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "retry_after": retry_after},
        headers={"Retry-After": str(retry_after)},
    )


@app.exception_handler(DecryptionError)
async def decryption_error_handler(request: Request, exc: DecryptionError):
    logger.error("Stored two-factor credential could not be decrypted on %s", request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": "Stored two-factor credential could not be decrypted"},
    )


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.critical("Configuration error: %s", exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": "Server misconfigured"})


@app.exception_handler(SecurityError)
async def security_error_handler(request: Request, exc: SecurityError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    if settings.is_production:
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    return JSONResponse(status_code=500, content={"detail": str(exc)})


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend([
                    (b"X-Content-Type-Options", b"nosniff"),
                    (b"X-Frame-Options", b"DENY"),
                    (b"X-XSS-Protection", b"1; mode=block"),
                    (b"Referrer-Policy", b"strict-origin-when-cross-origin"),
                    (b"Cache-Control", b"no-store"),
                ])
            await send(message)

        await self.app(scope, receive, send_with_headers)


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include module routes
app.include_router(auth_routes.router, prefix="/api/v1")
app.include_router(security_routes.router, prefix="/api/v1")


@app.on_event("startup")
async def startup_event():
    logger.info("Application startup")
    # Missing ENCRYPTION_KEY must stop the process here, not on the first 2FA request
    settings.validate_security_settings()

    if settings.rate_limit_cleanup_interval_seconds > 0:
        app.state.cleanup_task = asyncio.create_task(rate_limit_cleanup_loop())
        logger.info("Rate limit cleanup started - runs every %ss", settings.rate_limit_cleanup_interval_seconds)


@app.on_event("shutdown")
async def shutdown_event():
    task = getattr(app.state, "cleanup_task", None)
    if task:
        task.cancel()
    logger.info("Application shutdown")


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.app_name}", "status": "healthy"}


@app.get("/health")
@limiter.exempt
async def health():
    return {"status": "healthy"}


@app.get("/ready")
@limiter.exempt
async def ready():
    """Readiness probe: reports whether the 2FA core is configured."""
    try:
        settings.validate_security_settings()
    except ConfigurationError:
        return JSONResponse(status_code=503, content={"status": "not ready"})
    return {"status": "ready"}
