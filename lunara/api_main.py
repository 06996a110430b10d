from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from . import config
from .db import init_db
from .errors import register_exception_handlers
from .rate_limiter import RateLimitMiddleware
from .routes import ALL_ROUTERS
from .security_headers import SecurityHeadersMiddleware
from .seed import seed_base

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # third-party chatter
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # tables and base data (idempotent)
    init_db()
    seed_base()
    logger.info(f"{config.APP_NAME} API started ({config.ENVIRONMENT})")
    yield
    logger.info(f"{config.APP_NAME} API shutting down")


def create_app() -> FastAPI:
    app = FastAPI(title=f"{config.APP_NAME} API", version=config.APP_VERSION, lifespan=lifespan)

    register_exception_handlers(app)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms")
        return response

    if config.RATE_LIMIT_ENABLED:
        app.add_middleware(
            RateLimitMiddleware,
            limit=config.RATE_LIMIT_MAX,
            window_seconds=config.RATE_LIMIT_WINDOW_SECONDS,
            trust_proxy_headers=config.TRUST_PROXY_HEADERS,
        )

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    if config.SECURITY_HEADERS_ENABLED:
        app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/docs", "/openapi.json"])
    else:
        logger.warning("Security headers DISABLED - only use in development!")

    for router in ALL_ROUTERS:
        app.include_router(router)

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "success": True,
            "message": "API running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": config.APP_VERSION,
        }

    return app


configure_logging()
app = create_app()
