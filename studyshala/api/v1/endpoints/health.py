"""
Health Check Endpoints

- /health       - readiness: database round-trip plus configuration status
- /health/live  - liveness: the process is up
"""

from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from studyshala.core.config import settings
from studyshala.core.database import ping_database
from studyshala.core.logging_config import logger
from studyshala.modules.oauth.state_store import RedisOAuthStateStore


router = APIRouter(prefix="/health", tags=["Health Checks"])


async def check_database() -> Dict[str, Any]:
    """Check database connectivity"""
    try:
        return {"status": "healthy", "latency_ms": await ping_database()}
    except Exception as e:
        logger.error(f"[HealthCheck] Database check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}


async def check_state_store(request: Request) -> Dict[str, Any]:
    """The OAuth state store must be running for logins to work"""
    store = getattr(request.app.state, "oauth_state_store", None)
    if store is None:
        return {"status": "unhealthy", "message": "OAuth state store not initialised"}
    if isinstance(store, RedisOAuthStateStore) and not await store.redis_client.ping():
        return {"status": "unhealthy", "backend": "redis", "message": "Redis not reachable"}
    return {"status": "healthy", "backend": settings.OAUTH_STATE_BACKEND}


def check_integrations() -> Dict[str, Any]:
    """Optional integrations only degrade the service"""
    return {
        "status": "healthy" if settings.google_oauth_configured else "degraded",
        "google_oauth": settings.google_oauth_configured,
        "drive": settings.drive_configured,
    }


@router.get("")
async def readiness_check(request: Request):
    """Returns 503 when the database or the state store is unavailable"""
    checks = {
        "database": await check_database(),
        "oauth_state": await check_state_store(request),
        "integrations": check_integrations(),
    }
    healthy = all(c["status"] != "unhealthy" for c in checks.values())
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": datetime.utcnow().isoformat(),
        "checks": checks,
    }
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body,
    )


@router.get("/live")
async def liveness_check():
    return {
        "status": "alive",
        "timestamp": datetime.utcnow().isoformat(),
        "app": settings.APP_NAME,
    }
