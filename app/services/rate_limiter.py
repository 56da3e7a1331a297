"""Sliding-window rate limiter backed by a durable window store.

Policy, evaluated on every attempt against the window recomputed at ``now``:

1. Attempts older than ``window_seconds`` are ignored.
2. If ``max_attempts`` attempts remain in the window, deny with
   ``DENIED_QUOTA``. Quota is checked before spacing.
3. If the latest attempt is younger than ``spacing_seconds``, deny with
   ``DENIED_SPACING``.
4. Otherwise record ``now`` and allow.

Stored windows stay non-decreasing. With a non-negative spacing, a clock that
stepped backwards is denied by rule 3. With a negative spacing (accepted by
``check_and_record``, not by ``RateLimitPolicy``) such an attempt is allowed,
but the recorded value is clamped to the previous latest timestamp instead
of ``now``.

Storage problems never block a caller: unreadable history counts as empty
and a failed save still returns ``ALLOWED`` with ``persisted=False``.

Concurrency: read-modify-write for one fingerprint is serialized inside this
process by striped locks. Separate processes sharing a store can still both
admit a simultaneous burst; the limit is then exceeded by the burst width.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from app.adapters.window_store.base import AbstractWindowStore
from app.core.logging import short_hash
from app.services.retention_sweeper import RetentionSweeper
from app.utils.fingerprint import Identity, build_fingerprint

logger = logging.getLogger(__name__)


class RateLimitDecision(str, Enum):
    ALLOWED = "allowed"
    DENIED_SPACING = "denied_spacing"
    DENIED_QUOTA = "denied_quota"


@dataclass(frozen=True)
class RateLimitPolicy:
    """Two-tier limit applied per fingerprint.

    Attributes:
        spacing_seconds: Minimum gap between two accepted attempts.
        max_attempts: Maximum accepted attempts inside the window.
        window_seconds: Length of the rolling window.
    """

    spacing_seconds: int = 30
    max_attempts: int = 5
    window_seconds: int = 86400

    def __post_init__(self) -> None:
        if self.spacing_seconds < 0:
            raise ValueError("spacing_seconds must be >= 0")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a check-and-record operation.

    Attributes:
        decision: Tri-state outcome.
        attempts: Attempts inside the window after this decision.
        limit: Max attempts per window.
        remaining: Attempts still available in the window.
        retry_after_seconds: Suggested wait when denied, None when allowed.
        persisted: False when an allowed attempt could not be saved.
    """

    decision: RateLimitDecision
    attempts: int
    limit: int
    remaining: int
    retry_after_seconds: int | None = None
    persisted: bool = True

    @property
    def allowed(self) -> bool:
        return self.decision is RateLimitDecision.ALLOWED


class SlidingWindowRateLimiter:
    """Decides whether a caller may perform an action right now."""

    def __init__(
        self,
        store: AbstractWindowStore,
        *,
        policy: RateLimitPolicy | None = None,
        sweeper: RetentionSweeper | None = None,
        clock: Callable[[], float] = time.time,
        lock_stripes: int = 64,
    ) -> None:
        if lock_stripes < 1:
            raise ValueError("lock_stripes must be >= 1")

        self._store = store
        self._policy = policy or RateLimitPolicy()
        self._sweeper = sweeper
        self._clock = clock
        self._locks = tuple(threading.Lock() for _ in range(lock_stripes))

    @property
    def policy(self) -> RateLimitPolicy:
        return self._policy

    @property
    def store(self) -> AbstractWindowStore:
        return self._store

    @property
    def sweeper(self) -> RetentionSweeper | None:
        return self._sweeper

    def _lock_for(self, fingerprint: str) -> threading.Lock:
        return self._locks[hash(fingerprint) % len(self._locks)]

    def check(self, action_key: str, identity: Identity) -> RateLimitResult:
        """Check and record an attempt for ``identity`` on ``action_key``.

        Uses the configured policy and the injected clock.
        """

        fingerprint = build_fingerprint(action_key, identity)
        policy = self._policy
        return self.check_and_record(
            fingerprint,
            int(self._clock()),
            spacing_seconds=policy.spacing_seconds,
            max_attempts=policy.max_attempts,
            window_seconds=policy.window_seconds,
        )

    def check_and_record(
        self,
        fingerprint: str,
        now: int,
        *,
        spacing_seconds: int,
        max_attempts: int,
        window_seconds: int,
    ) -> RateLimitResult:
        """Evaluate the policy for ``fingerprint`` at ``now`` and record on success.

        Never raises: unexpected failures are logged and the attempt is
        allowed without being persisted.

        Args:
            fingerprint: Key from ``build_fingerprint``.
            now: Current UNIX time in whole seconds.
            spacing_seconds: Minimum gap between accepted attempts.
            max_attempts: Maximum accepted attempts inside the window.
            window_seconds: Rolling window length.

        Returns:
            RateLimitResult with the decision and retry guidance.
        """

        try:
            with self._lock_for(fingerprint):
                result = self._decide(
                    fingerprint, now, spacing_seconds, max_attempts, window_seconds
                )
        except Exception:
            logger.exception(
                "rate_limit.engine_failed",
                extra={"fingerprint_hash": short_hash(fingerprint)},
            )
            return RateLimitResult(
                decision=RateLimitDecision.ALLOWED,
                attempts=0,
                limit=max_attempts,
                remaining=max(0, max_attempts),
                persisted=False,
            )

        if result.allowed:
            self._run_sweeper(now)
        return result

    def _decide(
        self,
        fingerprint: str,
        now: int,
        spacing_seconds: int,
        max_attempts: int,
        window_seconds: int,
    ) -> RateLimitResult:
        loaded = self._store.load(fingerprint)
        window = sorted(t for t in loaded.timestamps if now - t <= window_seconds)
        count = len(window)
        fingerprint_hash = short_hash(fingerprint)

        if count >= max_attempts:
            retry_after = None
            if 1 <= max_attempts <= count:
                # Wait until enough attempts age out to free one slot
                retry_after = window[count - max_attempts] + window_seconds + 1 - now
            logger.warning(
                "rate_limit.denied",
                extra={
                    "fingerprint_hash": fingerprint_hash,
                    "reason": RateLimitDecision.DENIED_QUOTA.value,
                    "attempts": count,
                    "limit": max_attempts,
                    "retry_after_s": retry_after,
                },
            )
            return RateLimitResult(
                decision=RateLimitDecision.DENIED_QUOTA,
                attempts=count,
                limit=max_attempts,
                remaining=0,
                retry_after_seconds=retry_after,
            )

        if window and now - window[-1] < spacing_seconds:
            retry_after = window[-1] + spacing_seconds - now
            logger.warning(
                "rate_limit.denied",
                extra={
                    "fingerprint_hash": fingerprint_hash,
                    "reason": RateLimitDecision.DENIED_SPACING.value,
                    "attempts": count,
                    "limit": max_attempts,
                    "retry_after_s": retry_after,
                },
            )
            return RateLimitResult(
                decision=RateLimitDecision.DENIED_SPACING,
                attempts=count,
                limit=max_attempts,
                remaining=max_attempts - count,
                retry_after_seconds=retry_after,
            )

        # A clock that stepped backwards must not break ascending order
        window.append(max(now, window[-1]) if window else now)
        saved = self._store.save(fingerprint, window)

        logger.info(
            "rate_limit.allowed",
            extra={
                "fingerprint_hash": fingerprint_hash,
                "attempts": len(window),
                "limit": max_attempts,
                "persisted": saved.saved,
                "history_readable": loaded.ok,
            },
        )
        return RateLimitResult(
            decision=RateLimitDecision.ALLOWED,
            attempts=len(window),
            limit=max_attempts,
            remaining=max(0, max_attempts - len(window)),
            persisted=saved.saved,
        )

    def _run_sweeper(self, now: int) -> None:
        if self._sweeper is None:
            return
        try:
            self._sweeper.sweep(now)
        except Exception:
            logger.exception("retention_sweep.unexpected_error")
