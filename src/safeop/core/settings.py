"""Environment-driven settings for safeop.

Retry defaults and logging options are read from ``SAFEOP_*`` environment
variables (and a ``.env`` file) through pydantic-settings, validated once at
startup, and turned into immutable objects (``RetryPolicy.from_settings()``)
at the call sites that need them.

Examples:
    >>> from safeop.core.settings import get_settings
    >>> settings = get_settings()
    >>> settings.retry_max_attempts
    3

    SAFEOP_RETRY_MAX_ATTEMPTS=5 SAFEOP_RETRY_KINDS='["TIMEOUT"]' python app.py

Tags:
    settings, configuration, pydantic, environment, safeop
"""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from safeop.core.errors import ErrorKind


class SafeopSettings(BaseSettings):
    """Library-wide defaults.

    Fields
    ──────
    log_level          : structlog log level
    log_json           : JSON output (None = auto-detect from TTY)
    retry_max_attempts : default RetryPolicy.max_attempts
    retry_base_delay   : default first backoff delay, seconds
    retry_max_delay    : default backoff cap, seconds
    retry_multiplier   : default exponential multiplier
    retry_jitter       : default jitter fraction (0.1 = up to +10%)
    retry_kinds        : default retryable kinds
    """

    model_config = SettingsConfigDict(
        env_prefix="SAFEOP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None

    # ── Retry defaults ───────────────────────────────────────────
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=0.1, ge=0.0)
    retry_max_delay: float = Field(default=30.0, ge=0.0)
    retry_multiplier: float = Field(default=2.0, gt=1.0)
    retry_jitter: float = Field(default=0.1, ge=0.0, lt=1.0)
    retry_kinds: list[ErrorKind] = Field(
        default_factory=lambda: [ErrorKind.TIMEOUT, ErrorKind.RESOURCE_UNAVAILABLE]
    )

    @model_validator(mode="after")
    def _check_delays(self) -> SafeopSettings:
        if self.retry_max_delay < self.retry_base_delay:
            raise ValueError(
                f"retry_max_delay ({self.retry_max_delay}) must be >= "
                f"retry_base_delay ({self.retry_base_delay})"
            )
        return self


_settings: SafeopSettings | None = None


def get_settings(*, reload: bool = False) -> SafeopSettings:
    """Load and cache the process-wide settings."""
    global _settings
    if _settings is None or reload:
        _settings = SafeopSettings()
    return _settings


__all__ = ["SafeopSettings", "get_settings"]
