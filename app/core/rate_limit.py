"""Scan admission control wired into the HTTP layer.

This module connects the sliding-window limiter to FastAPI:
- ``rate_limit_middleware`` gates the configured route (``POST /api/scan``
  by default) and leaves every other request untouched.
- ``get_rate_limiter`` is the dependency the read-only status routes use.
- ``build_rate_limiter`` / ``build_sweeper`` construct the process-wide
  instances from settings; the app factory stores them on ``app.state``.

Quota is consumed at admission. A scan that fails afterwards keeps its slot
consumed; there is no refund path.
"""

from __future__ import annotations

import logging

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitSnapshot
from app.adapters.rate_limit.sliding_window import InMemorySlidingWindowRateLimiter
from app.adapters.rate_limit.sweeper import EvictionSweeper
from app.core.client_identity import resolve_client_key
from app.core.config import RateLimitSettings, settings
from app.core.exception_handlers import general_exception_handler
from app.core.logging import fingerprint
from app.schemas.rate_limit import RateLimitExceededDetails, RateLimitExceededResponse

logger = logging.getLogger(__name__)

HEADER_LIMIT = "X-RateLimit-Limit"
HEADER_REMAINING = "X-RateLimit-Remaining"
HEADER_RESET = "X-RateLimit-Reset"
HEADER_WINDOW = "X-RateLimit-Window"
HEADER_RETRY_AFTER = "Retry-After"

EXPOSED_HEADERS = [HEADER_LIMIT, HEADER_REMAINING, HEADER_RESET, HEADER_WINDOW, HEADER_RETRY_AFTER]


def build_rate_limiter(cfg: RateLimitSettings | None = None) -> InMemorySlidingWindowRateLimiter:
    """Create the process-wide limiter from settings."""

    cfg = cfg or settings.rate_limit
    return InMemorySlidingWindowRateLimiter(
        max_requests=cfg.max_requests,
        window_seconds=cfg.window_minutes * 60,
    )


def build_sweeper(
    limiter: InMemorySlidingWindowRateLimiter,
    cfg: RateLimitSettings | None = None,
) -> EvictionSweeper:
    cfg = cfg or settings.rate_limit
    return EvictionSweeper(
        limiter,
        interval_seconds=cfg.sweep_interval_minutes * 60,
        safety_margin_seconds=cfg.safety_margin_minutes * 60,
    )


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """FastAPI dependency returning the limiter owned by the running app."""

    return request.app.state.rate_limiter


def is_gated_request(request: Request, cfg: RateLimitSettings | None = None) -> bool:
    """Whether ``request`` targets the admission-controlled route.

    The path matches on whole segments: ``/api/scan`` and ``/api/scan/x``
    match, ``/api/scans`` does not.
    """

    cfg = cfg or settings.rate_limit
    if request.method.upper() != cfg.gated_method.upper():
        return False

    gated = cfg.gated_path.rstrip("/").lower()
    path = request.url.path.rstrip("/").lower()
    return path == gated or path.startswith(gated + "/")


def build_rate_limit_headers(
    snapshot: RateLimitSnapshot,
    *,
    remaining: int | None = None,
) -> dict[str, str]:
    """Quota headers for a gated response."""

    return {
        HEADER_LIMIT: str(snapshot.allowed),
        HEADER_REMAINING: str(snapshot.remaining if remaining is None else remaining),
        HEADER_RESET: str(snapshot.reset_epoch_seconds),
        HEADER_WINDOW: f"{snapshot.window_size_minutes}m",
    }


def build_rejection(
    snapshot: RateLimitSnapshot,
    *,
    client_key: str,
    now: float,
) -> JSONResponse:
    """Build the 429 answer for a denied admission check."""

    body = RateLimitExceededResponse(
        message=(
            f"Too many scan requests. Limit: {snapshot.allowed} requests per "
            f"{snapshot.window_size_minutes} minutes."
        ),
        details=RateLimitExceededDetails(
            limit=snapshot.allowed,
            window_minutes=snapshot.window_size_minutes,
            reset_time=snapshot.reset_time_iso,
            client_key=client_key,
        ),
    )

    headers = build_rate_limit_headers(snapshot, remaining=0)
    headers[HEADER_RETRY_AFTER] = str(snapshot.seconds_until_reset(now))

    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=body.model_dump(by_alias=True),
        headers=headers,
    )


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """HTTP middleware enforcing the scan quota.

    Non-gated requests are forwarded without touching the limiter. A gated
    request consumes one slot when admitted and gets the quota headers on its
    response, including the generic 500 built here when the route raises an
    unexpected exception. A denied one is answered with 429 and never reaches
    the route.

    Usage:
        app.middleware("http")(rate_limit_middleware)
    """

    if not is_gated_request(request):
        return await call_next(request)

    limiter: AbstractRateLimiter = request.app.state.rate_limiter
    client_key = resolve_client_key(request)
    key_hash = fingerprint(client_key)

    if not limiter.is_allowed(client_key):
        snapshot = limiter.get_rate_limit_info(client_key)
        now = limiter.now()
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "key_hash": key_hash,
                "limit": snapshot.allowed,
                "used": snapshot.used,
                "window_m": snapshot.window_size_minutes,
                "retry_after_s": snapshot.seconds_until_reset(now),
                "reset_time": snapshot.reset_time_iso,
            },
        )
        return build_rejection(snapshot, client_key=client_key, now=now)

    snapshot = limiter.get_rate_limit_info(client_key)
    logger.info(
        "rate_limit.allowed",
        extra={
            "key_hash": key_hash,
            "limit": snapshot.allowed,
            "used": snapshot.used,
            "remaining": snapshot.remaining,
            "window_m": snapshot.window_size_minutes,
        },
    )

    try:
        response = await call_next(request)
    except Exception as exc:
        # The slot is already spent; answer the generic 500 here so the
        # caller still sees its quota.
        response = await general_exception_handler(request, exc)
    response.headers.update(build_rate_limit_headers(snapshot))
    return response
