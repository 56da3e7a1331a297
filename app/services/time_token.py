"""Signed time tokens that reject forms submitted too fast.

A token is ``"<issued_at>:<hex hmac-sha256(secret, issued_at)>"``. It is
embedded in the form when rendered and checked on submission: the signature
must match and at least ``threshold_seconds`` must have elapsed.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from dataclasses import dataclass
from enum import Enum


class TimeTokenStatus(str, Enum):
    VALID = "valid"
    MALFORMED = "malformed"
    INVALID_SIGNATURE = "invalid_signature"
    TOO_FAST = "too_fast"


@dataclass(frozen=True)
class TimeTokenCheck:
    status: TimeTokenStatus
    elapsed_seconds: int | None = None

    @property
    def ok(self) -> bool:
        return self.status is TimeTokenStatus.VALID


def _sign(issued_at: str, secret: str) -> str:
    return hmac.new(secret.encode(), issued_at.encode(), hashlib.sha256).hexdigest()


def generate_time_token(secret: str, now: float | None = None) -> str:
    """Issue a token stamped with the current time."""

    issued_at = str(int(time.time() if now is None else now))
    return f"{issued_at}:{_sign(issued_at, secret)}"


def validate_time_token(
    token: str | None,
    secret: str,
    *,
    threshold_seconds: int,
    now: float | None = None,
) -> TimeTokenCheck:
    """Verify a submitted token.

    Args:
        token: Value posted back by the form.
        secret: HMAC secret used at issue time.
        threshold_seconds: Minimum seconds between issue and submission.
        now: Reference time in UNIX seconds; defaults to ``time.time()``.

    Returns:
        TimeTokenCheck with the status and, when signed correctly, the
        elapsed seconds.
    """

    if not token or ":" not in token:
        return TimeTokenCheck(TimeTokenStatus.MALFORMED)

    # Segments after the signature are ignored
    issued_at, signature = token.split(":")[:2]
    if not issued_at.isdigit():
        return TimeTokenCheck(TimeTokenStatus.MALFORMED)

    if not hmac.compare_digest(_sign(issued_at, secret), signature):
        return TimeTokenCheck(TimeTokenStatus.INVALID_SIGNATURE)

    elapsed = int(time.time() if now is None else now) - int(issued_at)
    if elapsed < threshold_seconds:
        return TimeTokenCheck(TimeTokenStatus.TOO_FAST, elapsed_seconds=elapsed)
    return TimeTokenCheck(TimeTokenStatus.VALID, elapsed_seconds=elapsed)
