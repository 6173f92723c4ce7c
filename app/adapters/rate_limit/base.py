"""Rate limiter interfaces.

The HTTP layer depends on this abstraction (not the concrete implementation)
so the storage backend can be swapped without touching the middleware or the
status routes.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone


def format_utc_millis(moment: datetime) -> str:
    """Render an aware datetime as ISO-8601 UTC with millisecond precision.

    Example:
        >>> format_utc_millis(datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc))
        '2024-05-01T12:00:00.123Z'
    """
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + (
        f"{moment.microsecond // 1000:03d}Z"
    )


@dataclass(frozen=True)
class RateLimitSnapshot:
    """Read-only view of one client's quota state.

    Attributes:
        used: Admitted requests currently inside the trailing window.
        allowed: Static per-window quota.
        window_size_minutes: Window length in whole minutes.
        reset_at: UNIX epoch seconds at which the oldest in-window request
            leaves the window (``now + window`` when nothing is in it).
    """

    used: int
    allowed: int
    window_size_minutes: int
    reset_at: float

    @property
    def remaining(self) -> int:
        return max(0, self.allowed - self.used)

    @property
    def reset_time(self) -> datetime:
        return datetime.fromtimestamp(self.reset_at, tz=timezone.utc)

    @property
    def reset_epoch_seconds(self) -> int:
        return int(self.reset_at)

    @property
    def reset_time_iso(self) -> str:
        return format_utc_millis(self.reset_time)

    def seconds_until_reset(self, now: float) -> int:
        """Whole seconds from ``now`` until ``reset_at``, floored and never negative."""
        return max(0, math.floor(self.reset_at - now))


class AbstractRateLimiter(ABC):
    """Interface for admission-control rate limiters."""

    @property
    @abstractmethod
    def max_requests(self) -> int:
        raise NotImplementedError

    @property
    @abstractmethod
    def window_minutes(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def now(self) -> float:
        """Current time, in UNIX epoch seconds, as seen by the limiter's clock."""
        raise NotImplementedError

    @abstractmethod
    def is_allowed(self, key: str) -> bool:
        """Admit or deny one request for ``key``, recording it when admitted.

        Args:
            key: Client key (e.g., resolved client IP).

        Returns:
            True when the request fits in the trailing window.
        """
        raise NotImplementedError

    @abstractmethod
    def get_rate_limit_info(self, key: str) -> RateLimitSnapshot:
        """Return the client's quota state without consuming any of it."""
        raise NotImplementedError

    @abstractmethod
    def tracked_clients(self) -> int:
        """Number of clients currently holding quota state."""
        raise NotImplementedError
