"""Rate limiting wiring for the HTTP layer.

Builds the window store, retention sweeper and limiter from settings, caches
them per process, and translates limiter denials into HTTP 429 responses.

Design goals:
- Routes depend on ``get_form_protection_service`` only.
- Storage backend is chosen by configuration (shared files or memory).
- Instances are rebuilt when settings change (primarily in tests).
"""

from __future__ import annotations

import logging
import threading

from fastapi import HTTPException, status

from app.adapters.window_store import (
    AbstractWindowStore,
    FileWindowStore,
    InMemoryWindowStore,
)
from app.core.config import RateLimitSettings, settings
from app.services.form_protection_service import FormProtectionService
from app.services.rate_limiter import (
    RateLimitPolicy,
    RateLimitResult,
    SlidingWindowRateLimiter,
)
from app.services.retention_sweeper import RetentionSweeper

logger = logging.getLogger(__name__)


_lock = threading.Lock()
_limiter: SlidingWindowRateLimiter | None = None
_limiter_config: tuple | None = None


def _config_key(cfg: RateLimitSettings) -> tuple:
    return (
        cfg.backend,
        cfg.storage_dir,
        cfg.spacing_seconds,
        cfg.max_attempts,
        cfg.window_seconds,
        cfg.gc_max_age_seconds,
        cfg.max_records,
    )


def build_window_store(cfg: RateLimitSettings) -> AbstractWindowStore:
    if cfg.backend == "memory":
        return InMemoryWindowStore()
    return FileWindowStore(cfg.storage_dir)


def build_rate_limiter(cfg: RateLimitSettings) -> SlidingWindowRateLimiter:
    """Assemble a limiter with its store and sweeper from settings."""

    store = build_window_store(cfg)
    sweeper = RetentionSweeper(
        store,
        max_age_seconds=cfg.gc_max_age_seconds,
        max_records=cfg.max_records,
    )
    policy = RateLimitPolicy(
        spacing_seconds=cfg.spacing_seconds,
        max_attempts=cfg.max_attempts,
        window_seconds=cfg.window_seconds,
    )
    logger.info(
        "rate_limit.configured",
        extra={
            "backend": cfg.backend,
            "spacing_s": cfg.spacing_seconds,
            "max_attempts": cfg.max_attempts,
            "window_s": cfg.window_seconds,
            "gc_max_age_s": cfg.gc_max_age_seconds,
            "max_records": cfg.max_records,
        },
    )
    return SlidingWindowRateLimiter(store, policy=policy, sweeper=sweeper)


def get_rate_limiter() -> SlidingWindowRateLimiter:
    """Return the process-wide limiter, rebuilding it if settings changed."""

    global _limiter, _limiter_config

    config = _config_key(settings.rate_limit)
    with _lock:
        if _limiter is None or _limiter_config != config:
            _limiter = build_rate_limiter(settings.rate_limit)
            _limiter_config = config
        return _limiter


def reset_rate_limiter() -> None:
    """Drop the cached limiter so the next call rebuilds it."""

    global _limiter, _limiter_config

    with _lock:
        _limiter = None
        _limiter_config = None


def get_form_protection_service() -> FormProtectionService:
    """FastAPI dependency returning the configured form protection service."""

    limiter = get_rate_limiter() if settings.rate_limit.enabled else None
    return FormProtectionService(
        limiter=limiter,
        form_settings=settings.form,
        rate_limit_settings=settings.rate_limit,
    )


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Build Retry-After and X-RateLimit-* headers for a denial."""

    if not settings.rate_limit.include_headers:
        return {}

    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reason": result.decision.value,
    }
    if result.retry_after_seconds is not None:
        headers["Retry-After"] = str(max(0, result.retry_after_seconds))
    return headers


def raise_rate_limited(result: RateLimitResult, message: str) -> None:
    """Raise HTTP 429 carrying the remediation message for the denial.

    Raises:
        HTTPException: Always.
    """

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail={
            "accepted": False,
            "reason": result.decision.value,
            "errors": {"rate_limit": [message]},
        },
        headers=rate_limit_headers(result) or None,
    )
