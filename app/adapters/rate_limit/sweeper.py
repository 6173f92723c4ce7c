"""Background eviction of idle clients from the window store.

Without eviction the store grows with every distinct client address the
process ever sees. The sweeper periodically trims history older than the
window plus a safety margin and drops clients left with an empty log.
"""

from __future__ import annotations

import asyncio
import logging

from app.adapters.rate_limit.sliding_window import InMemorySlidingWindowRateLimiter
from app.adapters.rate_limit.window_store import RequestLog

logger = logging.getLogger(__name__)


class EvictionSweeper:
    """Periodic mark-and-remove sweep over a limiter's ``WindowStore``.

    Eviction re-checks emptiness under the log's own lock and flags the log as
    retired before removing it, so an admission racing with eviction either
    lands in the log before it is judged empty (and the log survives) or sees
    the retired flag and retries against a fresh log. No admitted request is
    lost.
    """

    def __init__(
        self,
        limiter: InMemorySlidingWindowRateLimiter,
        *,
        interval_seconds: float = 30 * 60,
        safety_margin_seconds: float = 60 * 60,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        if safety_margin_seconds < 0:
            raise ValueError("safety_margin_seconds must be >= 0")

        self._limiter = limiter
        self._interval = interval_seconds
        self._safety_margin = safety_margin_seconds
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep(self) -> int:
        """Run one sweep cycle.

        Returns:
            Number of client entries removed from the store.
        """
        store = self._limiter.store
        cutoff = self._limiter.now() - self._limiter.window_seconds - self._safety_margin
        marked: list[tuple[str, RequestLog]] = []

        def _trim_and_mark(key: str, log: RequestLog) -> None:
            with log.lock:
                log.trim(cutoff)
                if len(log) == 0:
                    marked.append((key, log))

        store.for_each_entry(_trim_and_mark)

        removed = 0
        for key, log in marked:
            with log.lock:
                if len(log) or log.retired:
                    continue
                log.retired = True
                if store.remove(key, expected=log):
                    removed += 1

        logger.info(
            "rate_limit.sweep_completed",
            extra={
                "removed": removed,
                "tracked_clients": len(store),
            },
        )
        return removed

    async def start(self) -> None:
        """Start the background sweep loop (no-op if already running)."""
        if self.is_running:
            logger.debug("rate_limit.sweeper_already_running")
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="rate-limit-sweeper")
        logger.info(
            "rate_limit.sweeper_started",
            extra={
                "interval_s": self._interval,
                "safety_margin_s": self._safety_margin,
            },
        )

    async def stop(self) -> None:
        """Stop the loop, cancelling it if it does not exit promptly."""
        if self._task is None:
            return

        self._stop_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("rate_limit.sweeper_stop_timeout")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None
            logger.info("rate_limit.sweeper_stopped")

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            else:
                break

            try:
                await asyncio.to_thread(self.sweep)
            except Exception:
                logger.exception("rate_limit.sweep_failed")
