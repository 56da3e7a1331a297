"""Caller identity extraction from HTTP requests.

Builds the explicit ``Identity`` value consumed by the rate limiter from the
request: client address, User-Agent header and the optional caller cookie.
"""

from __future__ import annotations

import secrets

from fastapi import Request

from app.core.config import settings
from app.utils.fingerprint import Identity


def client_address(request: Request, *, trust_proxy_headers: bool = False) -> str | None:
    """Return the caller's address.

    When ``trust_proxy_headers`` is set, the left-most X-Forwarded-For entry
    wins; only enable it behind a proxy that overwrites that header.
    """

    if trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None


def identity_from_request(request: Request) -> Identity:
    """FastAPI dependency producing the caller identity for this request."""

    return Identity(
        address=client_address(
            request, trust_proxy_headers=settings.app.trust_proxy_headers
        ),
        user_agent=request.headers.get("user-agent"),
        token=request.cookies.get(settings.rate_limit.caller_cookie_name) or None,
    )


def new_caller_token() -> str:
    return secrets.token_hex(16)
