from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from studyshala import __version__
from studyshala.core.config import settings
from studyshala.core.database import init_db, close_db
from studyshala.core.exceptions import StudyShalaError
from studyshala.core.logging_config import logger
from studyshala.core.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    RequestSizeLimitMiddleware,
)
from studyshala.core.rate_limiter import limiter, rate_limit_exceeded_handler
from studyshala.api.v1.router import api_router
from studyshala.modules.oauth.state_store import create_state_store


async def validate_critical_config():
    """Validate critical configuration at startup - fail fast if missing"""
    errors = []
    warnings = []

    if not settings.DATABASE_URL:
        errors.append("DATABASE_URL is not set")

    if not settings.JWT_SECRET_KEY or settings.JWT_SECRET_KEY == "CHANGE_ME":
        errors.append("JWT_SECRET_KEY is not set or using default value")

    if settings.OAUTH_STATE_BACKEND.lower() not in ("memory", "redis"):
        errors.append(f"OAUTH_STATE_BACKEND must be 'memory' or 'redis', got '{settings.OAUTH_STATE_BACKEND}'")

    if not settings.google_oauth_configured:
        warnings.append("GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET not set - sign-in is disabled")

    if not settings.drive_configured:
        warnings.append("Drive not configured - uploads are stored as metadata only")

    if not settings.ADMIN_EMAILS:
        warnings.append("ADMIN_EMAILS_STR is empty - nobody can become admin")

    if errors:
        for err in errors:
            logger.critical(f"[Startup] CRITICAL: {err}")
        raise RuntimeError(f"Missing critical configuration: {', '.join(errors)}")

    for warn in warnings:
        logger.warning(f"[Startup] WARNING: {warn}")

    logger.info("[Startup] Critical configuration validated")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"API Version: {settings.API_VERSION}")
    logger.info("=" * 60)

    await validate_critical_config()
    await init_db()
    logger.info("[Startup] Database tables ready")

    state_store = create_state_store()
    await state_store.start()
    app.state.oauth_state_store = state_store

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await state_store.stop()
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Study material sharing for students, faculty and administrators",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False  # Prevent 307 redirects that break CORS
)

# Add rate limiter state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Add middleware (order matters - last added runs first)
# 1. Global per-IP rate limit, ahead of every route
app.add_middleware(SlowAPIMiddleware)

# 2. Request logging
app.add_middleware(RequestLoggingMiddleware)

# 3. Security headers
app.add_middleware(SecurityHeadersMiddleware)

# 4. Request size limit (JSON bodies and upload batches sized separately)
app.add_middleware(RequestSizeLimitMiddleware)

# 5. CORS - Origins from CORS_ORIGINS_STR and FRONTEND_URL
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time", "Content-Disposition"],
)


# Exception handlers
@app.exception_handler(StudyShalaError)
async def studyshala_exception_handler(request: Request, exc: StudyShalaError):
    if exc.status_code >= 500:
        logger.error(f"[{exc.code}] {exc.message}")
    else:
        logger.info(f"[{exc.code}] {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "code": "INTERNAL_ERROR",
            "details": {"message": str(exc)} if settings.DEBUG else {},
        }
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": __version__,
        "environment": settings.ENVIRONMENT
    }


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Include API router
app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "studyshala.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )
