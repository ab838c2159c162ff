import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.middleware.rate_limit import RateLimitMiddleware
from app.middleware.security import (
    SecurityHeadersMiddleware,
    HTTPSRedirectMiddleware,
)
from app.middleware.exceptions import register_exception_handlers
from app.routers import admin, auth, files, health, onboarding
from app.utils.cache import close_redis

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("triguard")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Release the shared Redis connection on shutdown."""
    logger.info("TriGuard onboarding API starting (%s)", settings.environment)
    try:
        yield
    finally:
        await close_redis()
        logger.info("TriGuard onboarding API stopped")


app = FastAPI(
    title="TriGuard Onboarding",
    description="New-hire onboarding wizard and staff review API",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware (outermost first) ─────────────────────────────
# Security headers (first - applies to all responses)
app.add_middleware(SecurityHeadersMiddleware)

# HTTPS redirect (production only)
app.add_middleware(HTTPSRedirectMiddleware, force_https=False)

# Rate limiting (Redis backed)
if settings.redis_enabled:
    app.add_middleware(
        RateLimitMiddleware,
        default_limit=100,  # 100 requests per minute per IP
        default_window=60,
        exempt_paths=["/health", "/health/ready", "/docs", "/openapi.json", "/files"],
    )

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
# Public: the wizard is keyed by submission id, files by signed token
app.include_router(health.router)
app.include_router(onboarding.router, prefix="/api/onboarding", tags=["onboarding"])
app.include_router(files.router, prefix="/files", tags=["files"])

# Staff (JWT)
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
