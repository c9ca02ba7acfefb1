"""
Rate Limiting for StudyShala API
================================
Global per-IP fixed-window limit using slowapi.

The default limit (RATE_LIMIT_DEFAULT, "100/15 minutes") is applied to every
route by SlowAPIMiddleware before the request reaches a handler. Storage is
in-process by default; point RATE_LIMIT_STORAGE_URI at Redis when running
more than one instance.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from studyshala.core.config import settings
from studyshala.core.logging_config import logger


def get_client_identifier(request: Request) -> str:
    """Rate limit key: the client IP address"""
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_client_identifier,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


def _retry_after_seconds(exc: RateLimitExceeded) -> int:
    """Length of the window that was exceeded, as an upper bound for the wait"""
    limit = getattr(exc, "limit", None)
    item = getattr(limit, "limit", None)
    if item is not None:
        try:
            return int(item.get_expiry())
        except (TypeError, ValueError):
            pass
    return 60


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """
    Handler for rate limit exceeded errors.

    Returns the standard error body plus a Retry-After header.
    """
    retry_after = _retry_after_seconds(exc)

    logger.warning(
        f"[RateLimit] Exceeded for {get_client_identifier(request)}: {exc.detail}",
        extra={"event_type": "rate_limited", "http_path": request.url.path},
    )

    return JSONResponse(
        status_code=429,
        content={
            "detail": "Too many requests. Please try again later.",
            "code": "RATE_LIMITED",
            "details": {"limit": str(exc.detail), "retry_after_seconds": retry_after},
        },
        headers={
            "Retry-After": str(retry_after),
            "X-RateLimit-Limit": settings.RATE_LIMIT_DEFAULT,
        }
    )
