"""
StudyShala - HTTP Middleware

- RequestLoggingMiddleware: request ids, timing and one log line per request
- SecurityHeadersMiddleware: static hardening headers
- RequestSizeLimitMiddleware: rejects oversized bodies before they are read
"""

import time
from typing import Callable
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from studyshala.core.config import settings
from studyshala.core.logging_config import (
    logger,
    set_request_id,
    set_user_id,
    generate_request_id,
)


# Health checks and docs are hit constantly and carry nothing worth logging
QUIET_PATHS = frozenset({
    "/",
    "/health",
    "/favicon.ico",
    "/docs",
    "/redoc",
    "/openapi.json",
})

# Multipart boundaries and part headers on top of the file bytes
MULTIPART_OVERHEAD = 1024 * 1024


def is_quiet(path: str) -> bool:
    return path in QUIET_PATHS or path.endswith("/health/live")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an id (taken from X-Request-ID when the caller
    sends one) and logs method, path, status and duration on completion.
    Downloads are streamed, so their duration only covers the first byte.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)
        path = request.url.path
        started = time.perf_counter()

        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - started) * 1000
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

            if not is_quiet(path):
                logger.log_request(
                    request.method,
                    path,
                    response.status_code,
                    duration_ms,
                    client_ip=request.client.host if request.client else None,
                )
                if not path.endswith("/download"):
                    logger.log_performance(f"{request.method} {path}", duration_ms)

            return response

        except Exception as exc:
            duration_ms = (time.perf_counter() - started) * 1000
            logger.log_error_with_context(
                exc, context=f"{request.method} {path}", duration_ms=round(duration_ms, 2)
            )
            raise

        finally:
            set_request_id("")
            set_user_id("")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):

    HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "X-XSS-Protection": "1; mode=block",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for name, value in self.HEADERS.items():
            response.headers.setdefault(name, value)
        return response


def body_limit_for(request: Request) -> int:
    """Upload batches may carry MAX_FILES_PER_UPLOAD full-size files; everything else is JSON"""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        return settings.MAX_UPLOAD_SIZE * settings.MAX_FILES_PER_UPLOAD + MULTIPART_OVERHEAD
    return settings.MAX_REQUEST_SIZE


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Checks Content-Length against the limit for the request's content type"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")
        if not content_length or not content_length.isdigit():
            return await call_next(request)

        limit = body_limit_for(request)
        if int(content_length) > limit:
            logger.warning(
                f"Request body too large: {content_length} bytes (limit {limit})",
                extra={"event_type": "request_too_large", "http_path": request.url.path}
            )
            return JSONResponse(
                status_code=413,
                content={
                    "detail": "Request body too large",
                    "code": "REQUEST_TOO_LARGE",
                    "details": {"max_bytes": limit},
                }
            )

        return await call_next(request)


__all__ = [
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
    "RequestSizeLimitMiddleware",
]
