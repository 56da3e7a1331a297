"""Caller fingerprints for rate limiting.

A fingerprint identifies "this caller performing this action". It is the
storage key of the caller's attempt window.
"""

from __future__ import annotations

from dataclasses import dataclass
from hashlib import sha256

UNKNOWN = "unknown"


@dataclass(frozen=True)
class Identity:
    """Caller attributes supplied by the identity source.

    Attributes:
        address: Network address of the caller.
        user_agent: User-Agent header value.
        token: Optional long-lived caller token (e.g., from a cookie). It is a
            continuity hint for logs only and never part of the fingerprint.
    """

    address: str | None
    user_agent: str | None
    token: str | None = None


def _or_unknown(value: str | None) -> str:
    return value if value else UNKNOWN


def build_action_key(base: str, form_id: str | None = None) -> str:
    """Scope an action key to a single form when a form id is provided.

    Examples:
        >>> build_action_key("formProtection")
        'formProtection'
        >>> build_action_key("formProtection", "contact")
        'formProtection_contact'
    """

    if form_id:
        return f"{base}_{form_id}"
    return base


def build_fingerprint(action_key: str, identity: Identity) -> str:
    """Build a stable fingerprint for an (action, caller) pair.

    The digest covers ``action_key``, address and user agent joined by ``_``.
    The caller token is deliberately excluded: a caller who drops or rotates
    the cookie must still map to the same window.

    Args:
        action_key: Label of the protected action.
        identity: Caller attributes.

    Returns:
        Hex-encoded SHA-256 digest (64 characters).
    """

    material = "_".join(
        (
            _or_unknown(action_key),
            _or_unknown(identity.address),
            _or_unknown(identity.user_agent),
        )
    )
    # Header values can carry lone surrogates; hash them instead of failing
    return sha256(material.encode("utf-8", "surrogatepass")).hexdigest()
