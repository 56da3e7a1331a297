"""Opportunistic garbage collection of window records.

There is no scheduler: the limiter calls ``sweep`` after each accepted
attempt. Two passes run over the store:

1. Age sweep: records not modified for more than ``max_age_seconds`` are
   deleted regardless of content.
2. Count cap: if more than ``max_records`` remain, the least recently
   modified records are deleted until the cap holds.

The cap can forget a legitimate caller's history early under high-cardinality
traffic; storage stays bounded in exchange. Every failure is logged and
swallowed.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.window_store.base import AbstractWindowStore, StoredEntry
from app.core.errors import StorageAppError
from app.core.logging import short_hash

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_SECONDS = 14 * 24 * 3600
DEFAULT_MAX_RECORDS = 1000


@dataclass(frozen=True)
class SweepReport:
    """Summary of one sweep.

    Attributes:
        scanned: Records enumerated before any deletion.
        expired: Records deleted by the age pass.
        evicted: Records deleted by the count cap.
        remaining: Records believed to remain afterwards.
        failures: Enumerate/delete operations that failed.
    """

    scanned: int = 0
    expired: int = 0
    evicted: int = 0
    remaining: int = 0
    failures: int = 0


class RetentionSweeper:
    """Bounds the age and number of stored window records."""

    def __init__(
        self,
        store: AbstractWindowStore,
        *,
        max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
        max_records: int = DEFAULT_MAX_RECORDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_age_seconds < 1:
            raise ValueError("max_age_seconds must be >= 1")
        if max_records < 1:
            raise ValueError("max_records must be >= 1")

        self._store = store
        self._max_age_seconds = max_age_seconds
        self._max_records = max_records
        self._clock = clock

    def _delete(self, entry: StoredEntry) -> bool:
        try:
            self._store.delete(entry.fingerprint)
        except (StorageAppError, OSError) as exc:
            logger.warning(
                "retention_sweep.delete_failed",
                extra={
                    "fingerprint_hash": short_hash(entry.fingerprint),
                    "error": str(exc),
                },
            )
            return False
        return True

    def sweep(self, now: float | None = None) -> SweepReport:
        """Run both maintenance passes.

        Args:
            now: Reference time in UNIX seconds; defaults to the clock.

        Returns:
            SweepReport describing what was removed. Never raises.
        """

        if now is None:
            now = self._clock()

        try:
            entries = self._store.list_entries()
        except (StorageAppError, OSError) as exc:
            logger.warning("retention_sweep.list_failed", extra={"error": str(exc)})
            return SweepReport(failures=1)

        failures = 0
        expired = 0
        survivors: list[StoredEntry] = []

        for entry in entries:
            if now - entry.modified_at > self._max_age_seconds:
                if self._delete(entry):
                    expired += 1
                    continue
                failures += 1
            survivors.append(entry)

        evicted = 0
        excess = len(survivors) - self._max_records
        if excess > 0:
            survivors.sort(key=lambda e: (e.modified_at, e.fingerprint))
            for entry in survivors[:excess]:
                if self._delete(entry):
                    evicted += 1
                else:
                    failures += 1

        report = SweepReport(
            scanned=len(entries),
            expired=expired,
            evicted=evicted,
            remaining=len(survivors) - evicted,
            failures=failures,
        )

        if expired or evicted or failures:
            logger.info(
                "retention_sweep.completed",
                extra={
                    "scanned": report.scanned,
                    "expired": report.expired,
                    "evicted": report.evicted,
                    "remaining": report.remaining,
                    "failures": report.failures,
                },
            )
        return report
