"""Concurrent per-client request history store.

Locking discipline:
- Every ``RequestLog`` carries its own lock; all reads and writes of its
  timestamps happen while holding it.
- ``WindowStore`` has one structural lock that guards insert/remove only.
- A thread never holds two logs' locks at once, and never acquires a log's
  lock while holding the structural lock.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Callable, Iterator


class RequestLog:
    """Timestamps of admitted requests for one client, oldest first.

    Insertion order stands in for time order because every timestamp is taken
    at the moment it is appended.
    """

    __slots__ = ("lock", "retired", "_timestamps")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        # Set (under ``lock``) once the sweeper has evicted this log. A caller
        # that finds a retired log must fetch a fresh one from the store.
        self.retired = False
        self._timestamps: deque[float] = deque()

    def __len__(self) -> int:
        return len(self._timestamps)

    def __iter__(self) -> Iterator[float]:
        return iter(self._timestamps)

    def trim(self, cutoff: float) -> int:
        """Drop timestamps strictly older than ``cutoff``; return how many were dropped."""
        dropped = 0
        while self._timestamps and self._timestamps[0] < cutoff:
            self._timestamps.popleft()
            dropped += 1
        return dropped

    def append(self, timestamp: float) -> None:
        self._timestamps.append(timestamp)

    def oldest(self) -> float | None:
        return self._timestamps[0] if self._timestamps else None


class WindowStore:
    """Map from client key to that client's ``RequestLog``.

    The store owns every log; callers look a log up on each operation and do
    not keep it beyond that operation.
    """

    def __init__(self) -> None:
        self._logs: dict[str, RequestLog] = {}
        self._structure_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._logs)

    def __contains__(self, key: object) -> bool:
        return key in self._logs

    def get(self, key: str) -> RequestLog | None:
        return self._logs.get(key)

    def get_or_create(self, key: str) -> RequestLog:
        """Return the log for ``key``, creating it exactly once under contention."""
        log = self._logs.get(key)
        if log is not None:
            return log

        with self._structure_lock:
            log = self._logs.get(key)
            if log is None:
                log = RequestLog()
                self._logs[key] = log
            return log

    def remove(self, key: str, expected: RequestLog | None = None) -> bool:
        """Remove ``key``; with ``expected``, only if it still maps to that log.

        Returns:
            True when an entry was removed.
        """
        with self._structure_lock:
            current = self._logs.get(key)
            if current is None or (expected is not None and current is not expected):
                return False
            del self._logs[key]
            return True

    def for_each_entry(self, fn: Callable[[str, RequestLog], None]) -> None:
        """Call ``fn(key, log)`` for every entry present when the walk starts.

        Entries inserted or removed during the walk may or may not be visited.
        """
        with self._structure_lock:
            entries = list(self._logs.items())
        for key, log in entries:
            fn(key, log)
