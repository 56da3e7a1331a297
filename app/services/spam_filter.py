"""Keyword-based spam checks for submitted form fields."""

from __future__ import annotations

from typing import Iterable, Mapping


def parse_patterns(patterns: str | None) -> list[str]:
    """Split a comma-separated pattern list, dropping blanks.

    Examples:
        >>> parse_patterns("viagra, bit.ly ,,crypto")
        ['viagra', 'bit.ly', 'crypto']
        >>> parse_patterns(None)
        []
    """

    if not patterns:
        return []
    return [p.strip() for p in patterns.split(",") if p.strip()]


def first_match(text: str, patterns: Iterable[str]) -> str | None:
    """Return the first pattern contained in ``text`` (case-insensitive)."""

    lowered = text.lower()
    for pattern in patterns:
        if pattern and pattern.lower() in lowered:
            return pattern
    return None


def find_spam_fields(
    fields: Mapping[str, object],
    patterns: Iterable[str],
    *,
    skip: Iterable[str] = (),
) -> dict[str, str]:
    """Scan text fields for spam words.

    Non-string values (e.g., checkbox lists), empty values and fields named
    in ``skip`` are ignored.

    Returns:
        Mapping of field name to the pattern that matched.
    """

    patterns = list(patterns)
    skipped = set(skip)
    hits: dict[str, str] = {}
    for name, value in fields.items():
        if name in skipped or not isinstance(value, str) or not value:
            continue
        match = first_match(value, patterns)
        if match is not None:
            hits[name] = match
    return hits
