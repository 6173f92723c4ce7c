"""Application factory for the FastAPI app.

Centralizes app construction (state, middleware, handlers, routers) so tests
can build isolated instances, each with its own quota store.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.adapters.scanner.base import AbstractScanOrchestrator
from app.api.routes import health_router, rate_limit_router, scan_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import (
    EXPOSED_HEADERS,
    build_rate_limiter,
    build_sweeper,
    rate_limit_middleware,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the eviction sweeper for as long as the app is serving."""

    sweeper = build_sweeper(app.state.rate_limiter)
    app.state.sweeper = sweeper
    await sweeper.start()
    logger.info(
        "app.startup",
        extra={
            "rate_limit_max": settings.rate_limit.max_requests,
            "rate_limit_window_m": settings.rate_limit.window_minutes,
            "gated_route": f"{settings.rate_limit.gated_method} {settings.rate_limit.gated_path}",
            "allowed_origins": settings.app.allowed_origins_list,
            "scan_engine_configured": app.state.scan_orchestrator is not None,
        },
    )
    try:
        yield
    finally:
        await sweeper.stop()
        logger.info("app.shutdown")


def create_app(scan_orchestrator: AbstractScanOrchestrator | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        scan_orchestrator: Engine that runs admitted scans. Without one,
            ``POST /api/scan`` answers 503 (after consuming quota).

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Scan Gateway API",
        description=(
            "Front door for an external security scanning engine. Scan requests "
            "are admitted per client through an exact sliding-window quota; "
            "quota state can be polled without consuming it."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Process-lifetime state
    app.state.rate_limiter = build_rate_limiter(settings.rate_limit)
    app.state.scan_orchestrator = scan_orchestrator

    # Middleware (last added runs first): CORS -> request id -> admission
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_id_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[*EXPOSED_HEADERS, settings.log.request_id_header],
    )

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(scan_router)
    app.include_router(rate_limit_router)
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
