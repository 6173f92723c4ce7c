"""Unit tests for the in-memory sliding-window rate limiter."""

import threading
from unittest.mock import Mock

import pytest

from app.adapters.rate_limit.sliding_window import InMemorySlidingWindowRateLimiter
from app.adapters.rate_limit.window_store import RequestLog, WindowStore

from conftest import T0, FakeClock

WINDOW = 3600


def test_allows_up_to_limit_in_same_window(limiter: InMemorySlidingWindowRateLimiter) -> None:
    used = []
    for _ in range(3):
        assert limiter.is_allowed("1.2.3.4") is True
        used.append(limiter.get_rate_limit_info("1.2.3.4").used)

    assert used == [1, 2, 3]


def test_blocks_when_over_limit(limiter: InMemorySlidingWindowRateLimiter) -> None:
    for _ in range(3):
        limiter.is_allowed("1.2.3.4")

    assert limiter.is_allowed("1.2.3.4") is False

    info = limiter.get_rate_limit_info("1.2.3.4")
    assert info.used == 3
    assert info.remaining == 0
    assert info.reset_at == T0 + WINDOW


def test_denied_checks_are_not_recorded(
    limiter: InMemorySlidingWindowRateLimiter, clock: FakeClock
) -> None:
    for _ in range(3):
        limiter.is_allowed("k")
    for _ in range(10):
        assert limiter.is_allowed("k") is False

    # Only the three admissions age out; denials never extended the window.
    clock.advance(WINDOW + 1)
    assert limiter.get_rate_limit_info("k").used == 0
    assert limiter.is_allowed("k") is True


def test_admits_again_once_oldest_entry_leaves_window(
    limiter: InMemorySlidingWindowRateLimiter, clock: FakeClock
) -> None:
    limiter.is_allowed("k")
    clock.advance(600)
    limiter.is_allowed("k")
    limiter.is_allowed("k")
    assert limiter.is_allowed("k") is False

    # Oldest admission was at T0: still inside until T0 + WINDOW.
    clock.current = T0 + WINDOW - 1
    assert limiter.is_allowed("k") is False

    clock.current = T0 + WINDOW + 1
    assert limiter.is_allowed("k") is True
    # The two admissions at T0+600 are still in the window.
    assert limiter.get_rate_limit_info("k").used == 3


def test_timestamp_exactly_at_window_start_still_counts(
    limiter: InMemorySlidingWindowRateLimiter, clock: FakeClock
) -> None:
    for _ in range(3):
        limiter.is_allowed("k")

    clock.current = T0 + WINDOW
    assert limiter.is_allowed("k") is False


def test_scenario_three_per_hour(limiter: InMemorySlidingWindowRateLimiter, clock: FakeClock) -> None:
    key = "1.2.3.4"
    for expected_used in (1, 2, 3):
        assert limiter.is_allowed(key) is True
        assert limiter.get_rate_limit_info(key).used == expected_used

    assert limiter.is_allowed(key) is False
    info = limiter.get_rate_limit_info(key)
    assert (info.used, info.remaining) == (3, 0)
    assert info.reset_at == pytest.approx(T0 + 60 * 60)

    clock.advance(61 * 60)
    assert limiter.is_allowed(key) is True
    assert limiter.get_rate_limit_info(key).used == 1


def test_isolated_by_key(limiter: InMemorySlidingWindowRateLimiter) -> None:
    before = limiter.get_rate_limit_info("b")
    for _ in range(5):
        limiter.is_allowed("a")

    assert limiter.get_rate_limit_info("b") == before
    assert limiter.is_allowed("b") is True


def test_info_is_read_only(limiter: InMemorySlidingWindowRateLimiter) -> None:
    for _ in range(20):
        info = limiter.get_rate_limit_info("k")
        assert info.used == 0

    assert "k" not in limiter.store
    assert limiter.tracked_clients() == 0

    for _ in range(3):
        assert limiter.is_allowed("k") is True


def test_info_for_unknown_key_resets_one_window_from_now(
    limiter: InMemorySlidingWindowRateLimiter, clock: FakeClock
) -> None:
    clock.advance(42)
    info = limiter.get_rate_limit_info("nobody")

    assert info.used == 0
    assert info.allowed == 3
    assert info.window_size_minutes == 60
    assert info.reset_at == T0 + 42 + WINDOW


def test_reset_time_follows_the_admitted_request(
    limiter: InMemorySlidingWindowRateLimiter, clock: FakeClock
) -> None:
    clock.advance(5)
    admitted_at = clock.time()
    limiter.is_allowed("k")

    info = limiter.get_rate_limit_info("k")
    assert info.reset_at == admitted_at + WINDOW
    assert info.reset_at > clock.time()


def test_empty_log_counts_as_untracked_capacity() -> None:
    clock = Mock(return_value=T0)
    store = WindowStore()
    store.get_or_create("k")
    limiter = InMemorySlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock, store=store)

    info = limiter.get_rate_limit_info("k")
    assert info.used == 0
    assert info.reset_at == T0 + 60
    assert limiter.is_allowed("k") is True


def test_snapshot_derived_fields() -> None:
    limiter = InMemorySlidingWindowRateLimiter(
        max_requests=2, window_seconds=90 * 60, clock=Mock(return_value=1714564800.5)
    )
    limiter.is_allowed("k")
    info = limiter.get_rate_limit_info("k")

    assert info.window_size_minutes == 90
    assert info.reset_epoch_seconds == 1714564800 + 5400
    assert info.reset_time_iso == "2024-05-01T13:30:00.500Z"
    assert info.seconds_until_reset(1714564800.5) == 5400
    assert info.seconds_until_reset(info.reset_at + 10) == 0


def test_concurrent_checks_never_exceed_quota() -> None:
    limiter = InMemorySlidingWindowRateLimiter(max_requests=5, window_seconds=60)
    barrier = threading.Barrier(40)
    results: list[bool] = []
    results_lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        allowed = limiter.is_allowed("shared")
        with results_lock:
            results.append(allowed)

    threads = [threading.Thread(target=worker) for _ in range(40)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 5
    assert limiter.get_rate_limit_info("shared").used == 5


def test_retries_when_log_was_evicted_mid_check() -> None:
    class StaleFirstStore(WindowStore):
        """Hands out an already-evicted log on the first lookup."""

        def __init__(self) -> None:
            super().__init__()
            self.stale = RequestLog()
            self.stale.retired = True
            self.lookups = 0

        def get_or_create(self, key: str) -> RequestLog:
            self.lookups += 1
            if self.lookups == 1:
                return self.stale
            return super().get_or_create(key)

    store = StaleFirstStore()
    limiter = InMemorySlidingWindowRateLimiter(
        max_requests=1, window_seconds=60, clock=Mock(return_value=T0), store=store
    )

    assert limiter.is_allowed("k") is True
    assert len(store.stale) == 0
    assert limiter.get_rate_limit_info("k").used == 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_requests": 0, "window_seconds": 60},
        {"max_requests": 1, "window_seconds": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        InMemorySlidingWindowRateLimiter(**kwargs)


def test_invalid_key() -> None:
    limiter = InMemorySlidingWindowRateLimiter(max_requests=1, window_seconds=60)

    with pytest.raises(ValueError):
        limiter.is_allowed("")
