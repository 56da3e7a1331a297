"""Pydantic schemas for form protection endpoints."""

from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, Field


class FormSubmission(BaseModel):
    """A form posted for protection checks."""

    fields: Dict[str, str | List[str]] = Field(
        default_factory=dict,
        description="Submitted form values; list values (e.g., checkboxes) skip spam checks.",
    )
    form_id: str | None = Field(
        default=None,
        max_length=128,
        pattern=r"^[A-Za-z0-9_.-]*$",
        description="Optional form identifier so each form has its own rate limit.",
    )


class FormSubmissionResponse(BaseModel):
    """Result of checking a submission."""

    accepted: bool = Field(..., description="True when every check passed.")
    errors: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Error messages keyed by field name.",
    )


class TimeTokenResponse(BaseModel):
    """Signed time token to embed in a rendered form."""

    field: str = Field(..., description="Hidden input name the token must be posted under.")
    token: str = Field(..., description="Token in '<issued_at>:<signature>' form.")
