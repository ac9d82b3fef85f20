# app/main.py
"""
FastAPI application entry point.
Includes security middleware, error handlers, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from app.routers import tags, admin, health
from app.database import create_tables
from app.config import settings
from app.exceptions import TagError
from app.utils.logger import get_logger
import time

logger = get_logger(__name__)

ADMIN_PATH_PREFIX = "/api/v1/admin"

app = FastAPI(
    title="CarCard Tag API",
    description="Vehicle tag lifecycle, OTP-gated emergency contact changes, privacy-filtered public scans.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (public scan page + app web build) ──────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to the web app origin in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Admin API Key Middleware ─────────────────────────────────────────────────
class AdminKeyMiddleware(BaseHTTPMiddleware):
    """
    Guards /api/v1/admin/* with X-API-Key == ADMIN_API_KEY.
    With no ADMIN_API_KEY configured, admin routes are closed entirely.
    """
    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(ADMIN_PATH_PREFIX):
            return await call_next(request)

        api_key = request.headers.get("X-API-Key")
        if not settings.ADMIN_API_KEY or api_key != settings.ADMIN_API_KEY:
            logger.warning(f"[ADMIN] Rejected {request.method} {request.url.path}: bad or missing API key")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key", "error": "Unauthenticated"},
            )
        return await call_next(request)


app.add_middleware(AdminKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Domain Error Handler ─────────────────────────────────────────────────────
@app.exception_handler(TagError)
async def tag_error_handler(request: Request, exc: TagError):
    logger.info(f"{request.method} {request.url.path} → {exc.status_code} {exc.error}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.error},
    )


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(tags.router,   prefix="/api/v1", tags=["🏷️  Tags"])
app.include_router(admin.router,  prefix="/api/v1", tags=["🛠️  Admin"])
app.include_router(health.router, prefix="/api/v1", tags=["💚 Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 CarCard Backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    if not settings.JWT_SECRET:
        logger.warning("⚠️  JWT_SECRET not set: authenticated tag routes will reject every request")
    if not settings.ADMIN_API_KEY:
        logger.warning("⚠️  ADMIN_API_KEY not set: admin routes are closed")
    if settings.OTP_DEBUG:
        logger.warning("⚠️  OTP_DEBUG is on: OTP codes are echoed in API responses")
    logger.info(f"📨 SMS provider: {settings.SMS_PROVIDER}")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_HOST}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 CarCard Backend shutting down...")
