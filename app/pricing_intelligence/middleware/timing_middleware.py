"""
Timing Middleware for FastAPI
=============================

Logs the execution time of every API request and returns it in the
X-Process-Time header.

Usage:
    from app.pricing_intelligence.middleware import TimingMiddleware
    app.add_middleware(TimingMiddleware)
"""

import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

SKIP_PATHS = (
    "/docs",
    "/redoc",
    "/openapi.json",
    "/favicon.ico",
    "/health",
)


class TimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path.startswith(SKIP_PATHS):
            return await call_next(request)

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            elapsed = time.perf_counter() - start_time
            logger.error(f"{request.method} {request.url.path} failed after {elapsed:.4f}s")
            raise

        elapsed = time.perf_counter() - start_time
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} in {elapsed:.4f}s")
        return response
