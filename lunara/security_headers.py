"""
Security headers added to every API response:
- X-Frame-Options: no framing
- X-Content-Type-Options: no MIME sniffing
- Referrer-Policy, Permissions-Policy
- Strict-Transport-Security (production only)
"""
from __future__ import annotations

import logging
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from . import config

logger = logging.getLogger(__name__)

_BASE_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
    "Permissions-Policy": "camera=(), geolocation=(), microphone=(), payment=()",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, exclude_paths: list[str] | None = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or []

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        if any(request.url.path.startswith(p) for p in self.exclude_paths):
            return response

        for name, value in _BASE_HEADERS.items():
            response.headers.setdefault(name, value)
        if config.IS_PRODUCTION:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        # the server banner tells clients nothing they need
        if "server" in response.headers:
            del response.headers["server"]
        return response
