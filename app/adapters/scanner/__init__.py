"""Scan engine adapter layer - the gated resource behind admission control."""

from app.adapters.scanner.base import AbstractScanOrchestrator, ScanTarget

__all__ = [
    "AbstractScanOrchestrator",
    "ScanTarget",
]
