"""
Custom middleware for the Synian skill service.
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger()

CORRELATION_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for request/response logging with correlation ID support.
    """

    def __init__(self, app, exclude_paths: set = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or {"/healthz", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        correlation_id = request.headers.get(CORRELATION_HEADER, f"req_{int(time.time() * 1000)}")

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        start_time = time.time()
        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            user_agent=request.headers.get("User-Agent", "unknown")
        )

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            logger.info(
                "Request completed",
                status_code=response.status_code,
                process_time_ms=round(process_time * 1000, 2)
            )

            response.headers[CORRELATION_HEADER] = correlation_id
            return response

        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                "Request failed",
                error_type=type(e).__name__,
                process_time_ms=round(process_time * 1000, 2)
            )

            return JSONResponse(
                status_code=500,
                content={
                    "error": "InternalServerError",
                    "message": "An unexpected error occurred",
                    "correlation_id": correlation_id,
                    "timestamp": datetime.now(timezone.utc).isoformat()
                },
                headers={CORRELATION_HEADER: correlation_id}
            )


# Process-wide request statistics served by /metrics
_request_stats: Dict[str, float] = {
    "request_count": 0,
    "error_count": 0,
    "total_processing_time": 0.0,
}


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware to collect basic metrics about requests.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            processing_time = time.time() - start_time
            _request_stats["request_count"] += 1
            _request_stats["total_processing_time"] += processing_time
            if status_code >= 400:
                _request_stats["error_count"] += 1


def get_metrics() -> Dict[str, Any]:
    """Get current application metrics."""
    count = _request_stats["request_count"]
    avg_processing_time = _request_stats["total_processing_time"] / count if count > 0 else 0

    return {
        "total_requests": int(count),
        "error_count": int(_request_stats["error_count"]),
        "error_rate": _request_stats["error_count"] / count if count > 0 else 0,
        "avg_processing_time_ms": round(avg_processing_time * 1000, 2)
    }
