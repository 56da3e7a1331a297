"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each domain (app, rate limit, form checks, logging) has its own env prefix
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front.
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def default_storage_dir() -> str:
    """Directory used by the file-backed window store when none is configured."""

    return str(Path(tempfile.gettempdir()) / "form-protection")


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether admin endpoints require API key authentication",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for admin endpoints",
    )
    trust_proxy_headers: bool = Field(
        False,
        description="Use the first X-Forwarded-For entry as the caller address",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Sliding-window rate limiter and retention sweeper configuration."""

    enabled: bool = Field(
        True,
        description="Enable rate limiting of form submissions",
    )
    backend: Literal["file", "memory"] = Field(
        "file",
        description="Window store backend: 'file' (shared across processes) or 'memory'",
    )
    storage_dir: str = Field(
        default_factory=default_storage_dir,
        description="Directory holding ratelimit_<fingerprint>.json records",
    )
    spacing_seconds: int = Field(
        30,
        description="Minimum seconds between two accepted attempts",
        ge=0,
    )
    max_attempts: int = Field(
        5,
        description="Maximum accepted attempts within the rolling window",
        ge=1,
    )
    window_seconds: int = Field(
        86400,
        description="Rolling window size in seconds",
        ge=1,
    )
    gc_max_age_seconds: int = Field(
        14 * 24 * 3600,
        description="Records not modified for longer than this are deleted",
        ge=1,
    )
    max_records: int = Field(
        1000,
        description="Maximum number of stored records kept after a sweep",
        ge=1,
    )
    action_key: str = Field(
        "formProtection",
        description="Base action identifier; a form id is appended when provided",
    )
    caller_cookie_name: str = Field(
        "fp_caller",
        description="Cookie carrying the optional, non-authoritative caller token",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    spacing_error_message: str = Field(
        "Please wait a moment before submitting again.",
        description="Message returned when attempts are too close together",
    )
    quota_error_message: str = Field(
        "Rate limit exceeded. Too many submissions.",
        description="Message returned when the attempt quota is exhausted",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class FormProtectionSettings(BaseSettings):
    """Spam content and time-token checks applied to submitted forms."""

    email_field: str = Field("email", description="Field holding the sender email")
    spam_word_patterns: str = Field(
        "viagra,porn,sex,shit,fuck,bit.ly,youtube,free,optimization,CRM,bitcoin,crypto,ericjones",
        description="Comma-separated words rejected in any text field",
    )
    spam_email_patterns: str = Field(
        "order-fulfillment.net,bestlocaldata.com,.ru",
        description="Comma-separated fragments rejected in the email field",
    )
    time_field: str = Field("form_time_token", description="Field holding the time token")
    time_secret: str = Field("changeme", description="HMAC secret for time tokens")
    time_threshold_seconds: int = Field(
        7,
        description="Minimum seconds between token issue and submission",
        ge=0,
    )
    spam_content_error_message: str = Field("Input picked up as spam.")
    spam_email_error_message: str = Field("Email picked up as spam.")
    time_token_error_message: str = Field("Invalid time token.")
    time_threshold_error_message: str = Field(
        "Form submitted too fast. Please wait a moment."
    )

    model_config = SettingsConfigDict(
        env_prefix="FORM_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log line format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file at this size (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate request correlation ids",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if a setting is malformed.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    form: FormProtectionSettings = Field(default_factory=FormProtectionSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
