import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from croptrail.clients.http import create_http_client
from croptrail.config import settings
from croptrail.middleware.exceptions import register_exception_handlers
from croptrail.middleware.rate_limit import RateLimitMiddleware
from croptrail.middleware.security import SecurityHeadersMiddleware
from croptrail.routers import analysis, auth, batches, environment, health, receipts, routes, transport
from croptrail.utils.redis_client import close_redis

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("croptrail")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the shared outbound HTTP client; close it and Redis on shutdown."""
    app.state.http_client = create_http_client()
    logger.info(f"CropTrail starting ({settings.environment})")
    try:
        yield
    finally:
        await app.state.http_client.aclose()
        await close_redis()
        logger.info("CropTrail stopped")


app = FastAPI(
    title="CropTrail",
    description="Farm-to-vendor crop batch tracking with environmental snapshots and AI quality analysis",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
# Starlette wraps in reverse order: the last one added runs first.

# Rate limiting (innermost)
app.add_middleware(
    RateLimitMiddleware,
    default_limit=100,
    default_window=60,
    exempt_paths=["/health", "/docs", "/openapi.json"],
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=settings.allowed_origins != "*",
    allow_methods=["*"],
    allow_headers=["*"],
)

# Security headers (outermost)
app.add_middleware(SecurityHeadersMiddleware)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(batches.router, prefix="/api/batches", tags=["batches"])
app.include_router(transport.router, prefix="/api/batches", tags=["transport"])
app.include_router(receipts.router, prefix="/api/batches", tags=["receipts"])
app.include_router(environment.router, prefix="/api/environmental-data", tags=["environment"])
app.include_router(analysis.router, prefix="/api/analysis", tags=["analysis"])
app.include_router(routes.router, prefix="/api/routes", tags=["routes"])
