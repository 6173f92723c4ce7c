"""Scan endpoints.

``POST /api/scan`` is the admission-controlled route: by the time the
handler runs, the rate-limit middleware has already consumed one slot of the
caller's quota. The scan itself is delegated to the orchestrator configured
on ``app.state.scan_orchestrator``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from app.adapters.rate_limit.base import format_utc_millis
from app.adapters.scanner.base import AbstractScanOrchestrator, ScanTarget
from app.core.errors import ScanAppError, ScanUnavailableAppError, ValidationAppError
from app.schemas.scan import KnownTarget, KnownTargetsResponse, ScanRequest, ScanResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Scan"])

KNOWN_TARGETS: tuple[KnownTarget, ...] = (
    KnownTarget(
        name="IBM Security AppScan Demo",
        url="https://demo.testfire.net",
        description="Vulnerable banking application with intentional security flaws.",
    ),
    KnownTarget(
        name="Acunetix Test Site",
        url="http://testphp.vulnweb.com",
        description="Deliberately vulnerable PHP-based web application for testing.",
    ),
    KnownTarget(
        name="OWASP Juice Shop",
        url="https://juice-shop.herokuapp.com",
        description="Modern, gamified vulnerable app with 100+ exploits (including OWASP Top 10).",
    ),
    KnownTarget(
        name="Google Gruyere",
        url="https://google-gruyere.appspot.com",
        description="Google's codelab on web exploits and defenses. May be intermittently available.",
    ),
)

DISCLAIMER = (
    "Only scan applications you own or have explicit permission to test. "
    "Unauthorized scanning is illegal."
)


def _get_orchestrator(request: Request) -> AbstractScanOrchestrator:
    orchestrator = getattr(request.app.state, "scan_orchestrator", None)
    if orchestrator is None:
        raise ScanUnavailableAppError(
            code="scan_engine_unavailable",
            message="No scan engine is configured for this deployment",
        )
    return orchestrator


@router.post("/scan", response_model=ScanResponse)
async def run_scan(payload: ScanRequest, request: Request) -> ScanResponse:
    """Run a scan against the requested target.

    Raises:
        ValidationAppError: 400 when the target is blank.
        ScanUnavailableAppError: 503 when no scan engine is configured.
        ScanAppError: 502 when the scan engine fails or returns a report
            that is not a JSON object. The quota slot stays consumed.
    """
    target = payload.target.strip()
    if not target:
        raise ValidationAppError(code="target_required", message="Target is required")

    orchestrator = _get_orchestrator(request)
    logger.info("scan.started", extra={"target": target, "target_name": payload.target_name})

    try:
        report = await orchestrator.run_scan(ScanTarget(target=target, target_name=payload.target_name))
        response = ScanResponse(
            target=target,
            timestamp=format_utc_millis(datetime.now(timezone.utc)),
            report=report,
        )
    except Exception as exc:
        logger.error(
            "scan.failed",
            extra={"target": target, "error_type": type(exc).__name__, "error_msg": str(exc)},
        )
        raise ScanAppError(
            code="scan_failed",
            message="The scan engine failed to complete the scan",
            details={"target": target},
        ) from exc

    logger.info("scan.completed", extra={"target": target})
    return response


@router.get("/targets", response_model=KnownTargetsResponse)
def get_known_targets() -> KnownTargetsResponse:
    """Legal, intentionally vulnerable targets suitable for trying the scanner."""
    return KnownTargetsResponse(legal_testing_targets=list(KNOWN_TARGETS), disclaimer=DISCLAIMER)
