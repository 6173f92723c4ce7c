from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe for load balancers and container orchestrators.

    Unlike ``/api/health`` it does not look at quota state.
    """

    return {"status": "ok"}
