"""Rate limiting adapters.

This package keeps admission control behind a small abstraction so the
in-memory sliding-window limiter can later be replaced by a shared store
without changing the HTTP layer.
"""

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitSnapshot
from app.adapters.rate_limit.sliding_window import InMemorySlidingWindowRateLimiter
from app.adapters.rate_limit.sweeper import EvictionSweeper
from app.adapters.rate_limit.window_store import RequestLog, WindowStore

__all__ = [
    "AbstractRateLimiter",
    "EvictionSweeper",
    "InMemorySlidingWindowRateLimiter",
    "RateLimitSnapshot",
    "RequestLog",
    "WindowStore",
]
