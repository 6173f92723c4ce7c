"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any ``app`` import so the global
settings object is built with test values.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("RATE_LIMIT_MAX", "3")
os.environ.setdefault("RATE_LIMIT_WINDOW_MINUTES", "60")
os.environ.setdefault("ALLOWED_ORIGINS", "http://127.0.0.1:5173")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.adapters.rate_limit.sliding_window import InMemorySlidingWindowRateLimiter
from app.adapters.scanner.base import AbstractScanOrchestrator, ScanTarget
from app.core.app_factory import create_app

T0 = 1_700_000_000.0


class FakeClock:
    """Deterministic clock used to drive window arithmetic."""

    def __init__(self, start: float = T0) -> None:
        self.current = start

    def time(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class FakeOrchestrator(AbstractScanOrchestrator):
    """Scan engine double that records calls and optionally fails."""

    def __init__(self, report: dict[str, Any] | None = None, error: Exception | None = None) -> None:
        self.report = report if report is not None else {"alerts": [], "summary": {"total": 0}}
        self.error = error
        self.calls: list[ScanTarget] = []

    async def run_scan(self, scan: ScanTarget) -> dict[str, Any]:
        self.calls.append(scan)
        if self.error is not None:
            raise self.error
        return self.report


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> InMemorySlidingWindowRateLimiter:
    return InMemorySlidingWindowRateLimiter(max_requests=3, window_seconds=3600, clock=clock.time)


@pytest.fixture
def orchestrator() -> FakeOrchestrator:
    return FakeOrchestrator()


@pytest.fixture
def app(limiter: InMemorySlidingWindowRateLimiter, orchestrator: FakeOrchestrator) -> FastAPI:
    application = create_app(scan_orchestrator=orchestrator)
    application.state.rate_limiter = limiter
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


def client_headers(ip: str) -> dict[str, str]:
    """Headers that pin the resolved client key to ``ip``."""
    return {"X-Forwarded-For": ip}
