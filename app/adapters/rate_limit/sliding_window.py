"""In-memory sliding-window-log rate limiter.

Every admitted request is recorded with its timestamp, so a decision is exact
for any trailing window of ``window_seconds``: at most ``max_requests``
admissions fit in it. The cost is O(requests in window) per check, which is
tiny for scan-sized quotas.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: per-client locks, see ``window_store``.
- Assumes a wall clock that does not move backwards.
"""

from __future__ import annotations

import time
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitSnapshot
from app.adapters.rate_limit.window_store import WindowStore


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Exact per-key sliding-window limiter backed by a ``WindowStore``.

    Denied checks leave no trace beyond trimming expired timestamps. Reads
    (``get_rate_limit_info``) never create store entries.
    """

    def __init__(
        self,
        *,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
        store: WindowStore | None = None,
    ) -> None:
        """Initialize the limiter.

        Args:
            max_requests: Admissions allowed inside any trailing window.
            window_seconds: Length of the trailing window in seconds.
            clock: Time source returning UNIX time in seconds.
            store: Backing store; a fresh one is created when omitted.

        Raises:
            ValueError: If max_requests or window_seconds are invalid.
        """
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._clock = clock
        self._store = store if store is not None else WindowStore()

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    @property
    def window_minutes(self) -> int:
        return self._window_seconds // 60

    @property
    def store(self) -> WindowStore:
        return self._store

    def now(self) -> float:
        return self._clock()

    def tracked_clients(self) -> int:
        return len(self._store)

    def is_allowed(self, key: str) -> bool:
        """Admit one request for ``key`` if the trailing window has room.

        Trim, count and append happen under the key's lock, so two concurrent
        checks can never both take the last free slot.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        while True:
            log = self._store.get_or_create(key)
            with log.lock:
                if log.retired:
                    # Evicted between lookup and lock; the store now holds
                    # (or will create) a fresh log for this key.
                    continue

                now = self._clock()
                log.trim(now - self._window_seconds)
                if len(log) >= self._max_requests:
                    return False

                log.append(now)
                return True

    def get_rate_limit_info(self, key: str) -> RateLimitSnapshot:
        """Compute the quota snapshot for ``key`` without consuming quota.

        ``reset_at`` is when the oldest in-window admission expires, or
        ``now + window`` for a client with nothing in the window.
        """
        now = self._clock()
        log = self._store.get(key)
        if log is None:
            return self._snapshot(used=0, reset_at=now + self._window_seconds)

        with log.lock:
            log.trim(now - self._window_seconds)
            oldest = log.oldest()
            used = len(log)

        reset_at = (oldest if oldest is not None else now) + self._window_seconds
        return self._snapshot(used=used, reset_at=reset_at)

    def _snapshot(self, *, used: int, reset_at: float) -> RateLimitSnapshot:
        return RateLimitSnapshot(
            used=used,
            allowed=self._max_requests,
            window_size_minutes=self.window_minutes,
            reset_at=reset_at,
        )
