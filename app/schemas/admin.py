"""Pydantic schemas for rate limit maintenance endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class RecordStatsResponse(BaseModel):
    """Snapshot of the window store."""

    records: int = Field(..., description="Number of stored window records.")
    max_records: int = Field(..., description="Cap enforced by the retention sweep.")
    oldest_modified_at: float | None = Field(
        default=None, description="UNIX time of the least recently written record."
    )
    newest_modified_at: float | None = Field(
        default=None, description="UNIX time of the most recently written record."
    )


class SweepResponse(BaseModel):
    """Outcome of a manually triggered retention sweep."""

    scanned: int
    expired: int
    evicted: int
    remaining: int
    failures: int
