"""Scan engine interfaces.

The scan route depends on this abstraction so any engine (a ZAP driver, a
remote worker, a test double) can be plugged in through the app factory.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ScanTarget:
    """A validated scan request handed to the orchestrator."""

    target: str
    target_name: str = ""


class AbstractScanOrchestrator(ABC):
    """Interface for the external engine that runs security scans.

    The orchestrator only ever sees requests that passed admission control.
    """

    @abstractmethod
    async def run_scan(self, scan: ScanTarget) -> dict[str, Any]:
        """Run a scan against ``scan.target`` and return the engine's report.

        Args:
            scan: Target URL/host and its display name.

        Returns:
            dict[str, Any]: JSON-serialisable scan report.

        Raises:
            Exception: Any failure; the route translates it to a 502.
        """
        ...
