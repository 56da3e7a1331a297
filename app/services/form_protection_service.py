"""Form submission protection workflow.

Runs the checks a submission must pass, in order:

1. Rate limit for the caller on this form (short-circuits when denied).
2. Spam words in any text field.
3. Spam fragments in the email field.
4. Signed time token present and old enough.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Mapping

from app.core.config import FormProtectionSettings, RateLimitSettings
from app.core.logging import short_hash
from app.services.rate_limiter import (
    RateLimitDecision,
    RateLimitResult,
    SlidingWindowRateLimiter,
)
from app.services.spam_filter import find_spam_fields, first_match, parse_patterns
from app.services.time_token import (
    TimeTokenStatus,
    generate_time_token,
    validate_time_token,
)
from app.utils.fingerprint import Identity, build_action_key

logger = logging.getLogger(__name__)

RATE_LIMIT_ERROR_FIELD = "rate_limit"


@dataclass
class FormCheckResult:
    """Outcome of checking one submission.

    Attributes:
        errors: Field name to error messages; empty when accepted.
        rate_limit: Limiter result, or None when rate limiting is disabled.
    """

    errors: dict[str, list[str]] = field(default_factory=dict)
    rate_limit: RateLimitResult | None = None

    @property
    def accepted(self) -> bool:
        return not self.errors

    @property
    def rate_limited(self) -> bool:
        return self.rate_limit is not None and not self.rate_limit.allowed

    def add_error(self, field_name: str, message: str) -> None:
        self.errors.setdefault(field_name, []).append(message)


class FormProtectionService:
    """Applies rate limiting, spam filtering and time-token checks to forms."""

    def __init__(
        self,
        *,
        limiter: SlidingWindowRateLimiter | None,
        form_settings: FormProtectionSettings,
        rate_limit_settings: RateLimitSettings,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._limiter = limiter
        self._form = form_settings
        self._rate_limit = rate_limit_settings
        self._clock = clock
        self._spam_words = parse_patterns(form_settings.spam_word_patterns)
        self._spam_emails = parse_patterns(form_settings.spam_email_patterns)

    @property
    def time_field(self) -> str:
        return self._form.time_field

    def issue_time_token(self) -> str:
        return generate_time_token(self._form.time_secret, self._clock())

    def rate_limit_message(self, decision: RateLimitDecision) -> str:
        """Remediation message shown to the caller for a denial."""

        if decision is RateLimitDecision.DENIED_QUOTA:
            return self._rate_limit.quota_error_message
        return self._rate_limit.spacing_error_message

    def check_submission(
        self,
        fields: Mapping[str, object],
        identity: Identity,
        *,
        form_id: str | None = None,
    ) -> FormCheckResult:
        """Run every check against a submission.

        Args:
            fields: Submitted form values.
            identity: Caller attributes from the identity source.
            form_id: Optional form identifier to scope the rate limit.

        Returns:
            FormCheckResult; a rate-limit denial is reported alone.
        """

        result = FormCheckResult()

        if self._limiter is not None:
            action_key = build_action_key(self._rate_limit.action_key, form_id)
            result.rate_limit = self._limiter.check(action_key, identity)
            if not result.rate_limit.allowed:
                result.add_error(
                    RATE_LIMIT_ERROR_FIELD,
                    self.rate_limit_message(result.rate_limit.decision),
                )
                return result

        self._check_spam_content(fields, result)
        self._check_spam_email(fields, result)
        self._check_time_token(fields, result)

        logger.info(
            "form_protection.checked",
            extra={
                "form_id": form_id,
                "accepted": result.accepted,
                "error_fields": sorted(result.errors),
                "caller_hash": short_hash(identity.token) if identity.token else None,
            },
        )
        return result

    def _check_spam_content(self, fields: Mapping[str, object], result: FormCheckResult) -> None:
        hits = find_spam_fields(
            fields,
            self._spam_words,
            skip=(self._form.email_field, self._form.time_field),
        )
        for field_name, pattern in hits.items():
            logger.warning(
                "form_protection.spam_content",
                extra={"field": field_name, "pattern": pattern},
            )
            result.add_error(field_name, self._form.spam_content_error_message)

    def _check_spam_email(self, fields: Mapping[str, object], result: FormCheckResult) -> None:
        email = fields.get(self._form.email_field)
        if not isinstance(email, str) or not email:
            return
        pattern = first_match(email, self._spam_emails)
        if pattern is not None:
            logger.warning("form_protection.spam_email", extra={"pattern": pattern})
            result.add_error(self._form.email_field, self._form.spam_email_error_message)

    def _check_time_token(self, fields: Mapping[str, object], result: FormCheckResult) -> None:
        token = fields.get(self._form.time_field)
        check = validate_time_token(
            token if isinstance(token, str) else None,
            self._form.time_secret,
            threshold_seconds=self._form.time_threshold_seconds,
            now=self._clock(),
        )
        if check.ok:
            return

        logger.warning(
            "form_protection.time_token_rejected",
            extra={"status": check.status.value, "elapsed_s": check.elapsed_seconds},
        )
        if check.status is TimeTokenStatus.TOO_FAST:
            result.add_error(self._form.time_field, self._form.time_threshold_error_message)
        else:
            result.add_error(self._form.time_field, self._form.time_token_error_message)
