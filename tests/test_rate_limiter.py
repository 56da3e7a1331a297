"""Unit tests for the sliding-window rate limiter."""

import threading
from pathlib import Path
from unittest.mock import Mock

import pytest

from app.adapters.window_store import FileWindowStore, InMemoryWindowStore
from app.adapters.window_store.base import AbstractWindowStore
from app.core.errors import StorageAppError
from app.services.rate_limiter import (
    RateLimitDecision,
    RateLimitPolicy,
    SlidingWindowRateLimiter,
)
from app.services.retention_sweeper import RetentionSweeper
from app.utils.fingerprint import Identity, build_fingerprint

FP = "f" * 64
T = 1_700_000_000

POLICY = {"spacing_seconds": 30, "max_attempts": 5, "window_seconds": 86400}


def _check(limiter: SlidingWindowRateLimiter, now: int, fingerprint: str = FP, **overrides):
    params = {**POLICY, **overrides}
    return limiter.check_and_record(fingerprint, now, **params)


class _BrokenStore(AbstractWindowStore):
    """Store whose every primitive fails."""

    def read(self, fingerprint):
        raise StorageAppError(code="window_store_read_failed", message="disk on fire")

    def write(self, fingerprint, timestamps):
        raise StorageAppError(code="window_store_write_failed", message="disk on fire")

    def list_entries(self):
        raise StorageAppError(code="window_store_list_failed", message="disk on fire")

    def delete(self, fingerprint):
        raise StorageAppError(code="window_store_delete_failed", message="disk on fire")


def test_five_spaced_attempts_allowed_then_quota_denies() -> None:
    store = InMemoryWindowStore()
    limiter = SlidingWindowRateLimiter(store)

    for offset in (0, 31, 62, 93, 124):
        assert _check(limiter, T + offset).decision is RateLimitDecision.ALLOWED

    sixth = _check(limiter, T + 155)

    assert sixth.decision is RateLimitDecision.DENIED_QUOTA
    assert sixth.remaining == 0
    assert store.read(FP) == [T, T + 31, T + 62, T + 93, T + 124]


def test_attempt_inside_spacing_is_denied() -> None:
    limiter = SlidingWindowRateLimiter(InMemoryWindowStore())

    assert _check(limiter, T).decision is RateLimitDecision.ALLOWED
    denied = _check(limiter, T + 5)

    assert denied.decision is RateLimitDecision.DENIED_SPACING
    assert denied.retry_after_seconds == 25
    assert denied.remaining == 4


def test_stale_entry_does_not_count() -> None:
    store = InMemoryWindowStore()
    store.write(FP, [T - 90000])
    limiter = SlidingWindowRateLimiter(store)

    result = _check(limiter, T)

    assert result.decision is RateLimitDecision.ALLOWED
    assert result.attempts == 1
    # Expired timestamps are dropped from the stored window
    assert store.read(FP) == [T]


def test_entry_exactly_at_window_edge_still_counts() -> None:
    store = InMemoryWindowStore()
    store.write(FP, [T - 86400] * 5)
    limiter = SlidingWindowRateLimiter(store)

    assert _check(limiter, T).decision is RateLimitDecision.DENIED_QUOTA
    assert _check(limiter, T + 1).decision is RateLimitDecision.ALLOWED


def test_quota_takes_precedence_over_spacing() -> None:
    store = InMemoryWindowStore()
    store.write(FP, [T - 4, T - 3, T - 2, T - 1, T])
    limiter = SlidingWindowRateLimiter(store)

    # Both too close and over quota: quota wins
    assert _check(limiter, T + 1).decision is RateLimitDecision.DENIED_QUOTA
    # Well spaced but over quota
    assert _check(limiter, T + 3600).decision is RateLimitDecision.DENIED_QUOTA


def test_quota_retry_after_points_at_oldest_counted_attempt() -> None:
    store = InMemoryWindowStore()
    store.write(FP, [T - 100, T - 80, T - 60])
    limiter = SlidingWindowRateLimiter(store)

    result = _check(limiter, T, max_attempts=3, window_seconds=1000)

    assert result.decision is RateLimitDecision.DENIED_QUOTA
    # T - 100 leaves the window at T + 901
    assert result.retry_after_seconds == 901
    later = _check(limiter, T + 901, max_attempts=3, window_seconds=1000)
    assert later.decision is RateLimitDecision.ALLOWED


def test_allowed_appends_now_as_last_element() -> None:
    store = InMemoryWindowStore()
    limiter = SlidingWindowRateLimiter(store)

    _check(limiter, T)
    result = _check(limiter, T + 40)

    assert result.allowed is True
    assert result.retry_after_seconds is None
    assert store.read(FP)[-1] == T + 40
    assert store.load(FP).timestamps == store.load(FP).timestamps


def test_denied_attempts_are_not_recorded() -> None:
    store = InMemoryWindowStore()
    limiter = SlidingWindowRateLimiter(store)

    _check(limiter, T)
    _check(limiter, T + 1)
    _check(limiter, T + 2)

    assert store.read(FP) == [T]


def test_zero_spacing_allows_back_to_back_until_quota() -> None:
    limiter = SlidingWindowRateLimiter(InMemoryWindowStore())

    decisions = [_check(limiter, T, spacing_seconds=0, max_attempts=3).decision for _ in range(4)]

    assert decisions == [RateLimitDecision.ALLOWED] * 3 + [RateLimitDecision.DENIED_QUOTA]


def test_backwards_clock_is_denied_by_spacing() -> None:
    store = InMemoryWindowStore()
    limiter = SlidingWindowRateLimiter(store)

    _check(limiter, T, spacing_seconds=0)
    result = _check(limiter, T - 10, spacing_seconds=0)

    assert result.decision is RateLimitDecision.DENIED_SPACING
    assert store.read(FP) == [T]


def test_backwards_clock_never_breaks_window_order() -> None:
    store = InMemoryWindowStore()
    limiter = SlidingWindowRateLimiter(store)

    _check(limiter, T, spacing_seconds=-60)
    result = _check(limiter, T - 10, spacing_seconds=-60)

    assert result.decision is RateLimitDecision.ALLOWED
    assert store.read(FP) == [T, T]


def test_unordered_stored_window_is_sorted_before_deciding() -> None:
    store = InMemoryWindowStore()
    store.write(FP, [T - 10, T - 100])
    limiter = SlidingWindowRateLimiter(store)

    result = _check(limiter, T + 15)

    # Spacing measured from the newest attempt (T - 10)
    assert result.decision is RateLimitDecision.DENIED_SPACING
    assert result.retry_after_seconds == 5


@pytest.mark.parametrize("max_attempts", [0, -1])
def test_degenerate_quota_denies_without_raising(max_attempts: int) -> None:
    limiter = SlidingWindowRateLimiter(InMemoryWindowStore())

    result = _check(limiter, T, max_attempts=max_attempts)

    assert result.decision is RateLimitDecision.DENIED_QUOTA
    assert result.retry_after_seconds is None


def test_unreadable_history_is_treated_as_empty_and_write_failure_still_allows() -> None:
    limiter = SlidingWindowRateLimiter(_BrokenStore())

    first = _check(limiter, T)
    second = _check(limiter, T + 1)

    assert first.decision is RateLimitDecision.ALLOWED
    assert first.persisted is False
    assert second.decision is RateLimitDecision.ALLOWED


def test_unexpected_store_exception_fails_open() -> None:
    store = Mock(spec=AbstractWindowStore)
    store.load.side_effect = RuntimeError("boom")
    limiter = SlidingWindowRateLimiter(store)

    result = _check(limiter, T)

    assert result.decision is RateLimitDecision.ALLOWED
    assert result.persisted is False


def test_sweeper_runs_only_after_allowed_decisions() -> None:
    sweeper = Mock(spec=RetentionSweeper)
    limiter = SlidingWindowRateLimiter(InMemoryWindowStore(), sweeper=sweeper)

    _check(limiter, T)
    _check(limiter, T + 1)

    sweeper.sweep.assert_called_once_with(T)


def test_sweeper_exception_does_not_affect_decision() -> None:
    sweeper = Mock(spec=RetentionSweeper)
    sweeper.sweep.side_effect = RuntimeError("sweep exploded")
    limiter = SlidingWindowRateLimiter(InMemoryWindowStore(), sweeper=sweeper)

    assert _check(limiter, T).decision is RateLimitDecision.ALLOWED


def test_check_uses_policy_clock_and_fingerprint(clock) -> None:
    store = InMemoryWindowStore()
    policy = RateLimitPolicy(spacing_seconds=10, max_attempts=2, window_seconds=60)
    limiter = SlidingWindowRateLimiter(store, policy=policy, clock=clock)
    identity = Identity(address="203.0.113.7", user_agent="pytest", token="cookie-1")

    assert limiter.check("contact", identity).allowed is True
    clock.advance(5)
    assert limiter.check("contact", identity).decision is RateLimitDecision.DENIED_SPACING
    clock.advance(10)
    # Dropping the cookie does not reset the caller's history
    assert limiter.check("contact", Identity("203.0.113.7", "pytest")).allowed is True
    clock.advance(10)
    assert limiter.check("contact", identity).decision is RateLimitDecision.DENIED_QUOTA

    fingerprint = build_fingerprint("contact", identity)
    assert len(store.read(fingerprint)) == 2


def test_history_survives_across_limiter_instances(tmp_path: Path) -> None:
    first = SlidingWindowRateLimiter(FileWindowStore(tmp_path))
    for offset in (0, 31, 62, 93, 124):
        assert _check(first, T + offset).allowed

    second = SlidingWindowRateLimiter(FileWindowStore(tmp_path))

    assert _check(second, T + 155).decision is RateLimitDecision.DENIED_QUOTA


def test_concurrent_attempts_in_one_process_respect_quota() -> None:
    limiter = SlidingWindowRateLimiter(InMemoryWindowStore())
    results = []
    results_lock = threading.Lock()

    def _attempt() -> None:
        result = _check(limiter, T, spacing_seconds=0, max_attempts=5)
        with results_lock:
            results.append(result.decision)

    threads = [threading.Thread(target=_attempt) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(RateLimitDecision.ALLOWED) == 5
    assert results.count(RateLimitDecision.DENIED_QUOTA) == 15


@pytest.mark.parametrize(
    "kwargs",
    [
        {"spacing_seconds": -1},
        {"max_attempts": 0},
        {"window_seconds": 0},
    ],
)
def test_invalid_policy(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        RateLimitPolicy(**kwargs)


def test_invalid_lock_stripes() -> None:
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(InMemoryWindowStore(), lock_stripes=0)


@pytest.mark.parametrize("payload", [b"[1,\xff]", b"[" * 100_000 + b"]" * 100_000])
def test_corrupt_file_record_is_replaced_and_limits_apply(tmp_path: Path, payload: bytes) -> None:
    store = FileWindowStore(tmp_path)
    store.path_for(FP).write_bytes(payload)
    limiter = SlidingWindowRateLimiter(store)

    first = _check(limiter, T)

    assert first.decision is RateLimitDecision.ALLOWED
    assert first.persisted is True
    assert store.read(FP) == [T]
    assert _check(limiter, T + 1).decision is RateLimitDecision.DENIED_SPACING


def test_check_with_lone_surrogate_user_agent_is_recorded(clock) -> None:
    store = InMemoryWindowStore()
    limiter = SlidingWindowRateLimiter(store, clock=clock)
    identity = Identity("1.2.3.4", "bad\ud800ua")

    result = limiter.check("contact", identity)

    assert result.decision is RateLimitDecision.ALLOWED
    assert result.persisted is True
    assert store.read(build_fingerprint("contact", identity)) == [int(clock())]
