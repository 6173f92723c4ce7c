"""Pydantic schemas for quota status and throttling responses.

JSON field names are camelCase on the wire (browser clients poll these);
Python attributes stay snake_case.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RateLimitStatusResponse(_CamelModel):
    """Current quota state for the calling client."""

    limit: int = Field(..., description="Scans allowed per window.")
    used: int = Field(..., description="Scans admitted inside the current trailing window.")
    remaining: int = Field(..., description="Scans still available in the window.")
    window_minutes: int = Field(..., description="Window length in minutes.")
    reset_time: str = Field(
        ..., description="When the oldest in-window scan expires (ISO-8601 UTC, ms precision)."
    )
    reset_in_seconds: int = Field(..., description="Seconds until reset_time.")


class RateLimitExceededDetails(_CamelModel):
    limit: int
    window_minutes: int
    reset_time: str
    client_key: str = Field(..., description="Key the quota was counted against.")


class RateLimitExceededResponse(BaseModel):
    """Body of a 429 answer from the admission middleware."""

    error: str = "Rate limit exceeded"
    message: str
    details: RateLimitExceededDetails


class HealthRateLimit(_CamelModel):
    max_requests: int
    window_minutes: int
    current_usage: int
    remaining: int
    reset_time: str


class HealthResponse(_CamelModel):
    """Service health with the caller's quota summary."""

    status: str = "ok"
    timestamp: str
    allowed_origins: list[str] = Field(default_factory=list)
    rate_limit: HealthRateLimit


class ClientUsage(_CamelModel):
    used: int
    limit: int
    remaining: int
    reset_time: str
    window_minutes: int


class RateLimitConfig(_CamelModel):
    max_requests_per_window: int
    window_size_minutes: int


class RateLimitStatsResponse(_CamelModel):
    """Operator view of the limiter."""

    current_ip: str
    current_ip_usage: ClientUsage
    rate_limit_config: RateLimitConfig
    tracked_clients: int = Field(..., description="Clients currently holding quota state.")
    server_time: str


class AdminUsage(_CamelModel):
    used: int
    remaining: int
    limit: int


class AdminHealthResponse(_CamelModel):
    status: str = "ok"
    rate_limit_service: str = "operational"
    client_ip: str
    test_allowed: bool = Field(
        ..., description="Whether the caller's next scan would be admitted right now."
    )
    current_usage: AdminUsage
    timestamp: str
