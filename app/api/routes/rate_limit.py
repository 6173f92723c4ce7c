"""Read-only quota status endpoints.

None of these routes consume quota: they only call
``get_rate_limit_info`` and never ``is_allowed``. They are safe to poll from
the UI and from health checks.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from app.adapters.rate_limit.base import AbstractRateLimiter, format_utc_millis
from app.core.client_identity import resolve_client_key
from app.core.config import settings
from app.core.rate_limit import get_rate_limiter
from app.schemas.rate_limit import (
    AdminHealthResponse,
    AdminUsage,
    ClientUsage,
    HealthRateLimit,
    HealthResponse,
    RateLimitConfig,
    RateLimitStatsResponse,
    RateLimitStatusResponse,
)

router = APIRouter(prefix="/api", tags=["Rate limit"])

Limiter = Annotated[AbstractRateLimiter, Depends(get_rate_limiter)]


def _server_time() -> str:
    return format_utc_millis(datetime.now(timezone.utc))


@router.get("/ratelimit", response_model=RateLimitStatusResponse)
def get_rate_limit_status(request: Request, limiter: Limiter) -> RateLimitStatusResponse:
    """Quota state for the calling client.

    Returns:
        RateLimitStatusResponse: limit, used, remaining, window and reset info.
    """
    snapshot = limiter.get_rate_limit_info(resolve_client_key(request))

    return RateLimitStatusResponse(
        limit=snapshot.allowed,
        used=snapshot.used,
        remaining=snapshot.remaining,
        window_minutes=snapshot.window_size_minutes,
        reset_time=snapshot.reset_time_iso,
        reset_in_seconds=snapshot.seconds_until_reset(limiter.now()),
    )


@router.get("/health", response_model=HealthResponse)
def get_health(request: Request, limiter: Limiter) -> HealthResponse:
    """Service health including the caller's quota summary."""
    snapshot = limiter.get_rate_limit_info(resolve_client_key(request))

    return HealthResponse(
        timestamp=_server_time(),
        allowed_origins=settings.app.allowed_origins_list,
        rate_limit=HealthRateLimit(
            max_requests=snapshot.allowed,
            window_minutes=snapshot.window_size_minutes,
            current_usage=snapshot.used,
            remaining=snapshot.remaining,
            reset_time=snapshot.reset_time_iso,
        ),
    )


@router.get("/admin/ratelimit/stats", response_model=RateLimitStatsResponse)
def get_rate_limit_stats(request: Request, limiter: Limiter) -> RateLimitStatsResponse:
    """Limiter configuration, caller usage and the number of tracked clients.

    Not authenticated; expose it only on trusted networks.
    """
    client_key = resolve_client_key(request)
    snapshot = limiter.get_rate_limit_info(client_key)

    return RateLimitStatsResponse(
        current_ip=client_key,
        current_ip_usage=ClientUsage(
            used=snapshot.used,
            limit=snapshot.allowed,
            remaining=snapshot.remaining,
            reset_time=snapshot.reset_time_iso,
            window_minutes=snapshot.window_size_minutes,
        ),
        rate_limit_config=RateLimitConfig(
            max_requests_per_window=limiter.max_requests,
            window_size_minutes=limiter.window_minutes,
        ),
        tracked_clients=limiter.tracked_clients(),
        server_time=_server_time(),
    )


@router.get("/admin/health", response_model=AdminHealthResponse)
def get_admin_health(request: Request, limiter: Limiter) -> AdminHealthResponse:
    client_key = resolve_client_key(request)
    snapshot = limiter.get_rate_limit_info(client_key)

    return AdminHealthResponse(
        client_ip=client_key,
        test_allowed=snapshot.remaining > 0,
        current_usage=AdminUsage(
            used=snapshot.used,
            remaining=snapshot.remaining,
            limit=snapshot.allowed,
        ),
        timestamp=_server_time(),
    )
