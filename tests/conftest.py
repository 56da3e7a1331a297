"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any app import so the global settings
object picks them up.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("FORM_TIME_SECRET", "test-secret")

import pytest

from app.core.rate_limit import reset_rate_limiter


class FakeClock:
    """Deterministic clock returning whole seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _fresh_rate_limiter():
    """Give every test its own process-wide limiter (and memory store)."""
    reset_rate_limiter()
    yield
    reset_rate_limiter()
