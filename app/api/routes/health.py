from __future__ import annotations

from fastapi import APIRouter

from app.core.config import settings

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check for load balancers and monitors.

    Returns:
        dict: ``status`` plus the active rate limit backend (or "disabled").
    """

    rate_limit = settings.rate_limit.backend if settings.rate_limit.enabled else "disabled"
    return {"status": "ok", "rate_limit": rate_limit}
