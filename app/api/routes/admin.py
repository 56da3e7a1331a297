from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Path, status

from app.core.auth import verify_api_key
from app.core.config import settings
from app.core.rate_limit import get_rate_limiter
from app.schemas.admin import RecordStatsResponse, SweepResponse
from app.services.rate_limiter import SlidingWindowRateLimiter
from app.services.retention_sweeper import RetentionSweeper

router = APIRouter(
    prefix="/admin/rate-limit",
    tags=["Admin"],
    dependencies=[Depends(verify_api_key)],
)


@router.get("/records", response_model=RecordStatsResponse)
def record_stats(
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
) -> RecordStatsResponse:
    """Summarize the stored window records."""

    entries = limiter.store.list_entries()
    modified = [e.modified_at for e in entries]
    return RecordStatsResponse(
        records=len(entries),
        max_records=settings.rate_limit.max_records,
        oldest_modified_at=min(modified) if modified else None,
        newest_modified_at=max(modified) if modified else None,
    )


@router.post("/sweep", response_model=SweepResponse)
def run_sweep(
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
) -> SweepResponse:
    """Run the retention sweep immediately."""

    sweeper = limiter.sweeper or RetentionSweeper(
        limiter.store,
        max_age_seconds=settings.rate_limit.gc_max_age_seconds,
        max_records=settings.rate_limit.max_records,
    )
    report = sweeper.sweep()
    return SweepResponse(
        scanned=report.scanned,
        expired=report.expired,
        evicted=report.evicted,
        remaining=report.remaining,
        failures=report.failures,
    )


@router.delete("/records/{fingerprint}", status_code=status.HTTP_204_NO_CONTENT)
def reset_record(
    fingerprint: str = Path(..., pattern=r"^[0-9a-f]{64}$"),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
) -> None:
    """Forget a caller's history so their next attempt is allowed."""

    if not limiter.store.delete(fingerprint):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No rate limit record for this fingerprint.",
        )
