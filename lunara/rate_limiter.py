"""
In-memory fixed-window rate limiting per client IP.
Counters live in the process; each app instance owns its own limiter.
"""
from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Callable

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .errors import error_response

logger = logging.getLogger(__name__)


class FixedWindowLimiter:
    def __init__(self, limit: int, window_seconds: int):
        self.limit = limit
        self.window_seconds = window_seconds
        # {key: (count, reset_time)}
        self._windows: dict[str, tuple[int, float]] = {}
        self._lock = Lock()

    def hit(self, key: str, now: float | None = None) -> tuple[bool, int, float]:
        """Counts one request; returns (allowed, remaining, reset_time)."""
        now = time.time() if now is None else now
        with self._lock:
            count, reset_time = self._windows.get(key, (0, 0.0))
            if now >= reset_time:
                count, reset_time = 0, now + self.window_seconds
            count += 1
            self._windows[key] = (count, reset_time)
            if len(self._windows) > 10_000:
                self._cleanup(now)
        return count <= self.limit, max(self.limit - count, 0), reset_time

    def _cleanup(self, now: float) -> None:
        expired = [k for k, (_, reset) in self._windows.items() if now >= reset]
        for k in expired:
            del self._windows[k]
        logger.debug(f"Cleaned up {len(expired)} expired rate limit entries")


def client_ip(request: Request, trust_proxy_headers: bool = False) -> str:
    """
    The socket peer address. X-Forwarded-For is client-controlled, so it is only
    read when the app sits behind a proxy that rewrites it.
    """
    forwarded = request.headers.get("x-forwarded-for") if trust_proxy_headers else None
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limit: int, window_seconds: int, path_prefix: str = "/api/", trust_proxy_headers: bool = False):
        super().__init__(app)
        self.trust_proxy_headers = trust_proxy_headers
        self.limiter = FixedWindowLimiter(limit, window_seconds)
        self.path_prefix = path_prefix

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        ip = client_ip(request, self.trust_proxy_headers)
        allowed, remaining, reset_time = self.limiter.hit(ip)
        if not allowed:
            retry_after = max(int(reset_time - time.time()), 1)
            logger.warning(f"Rate limit exceeded for {ip} on {request.url.path}")
            return error_response(
                status.HTTP_429_TOO_MANY_REQUESTS,
                "Too many requests",
                headers={"Retry-After": str(retry_after)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.limiter.limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response
