"""Shared configuration contract for tenantcore.

Pydantic-validated configuration models: logging, Redis storage, link
building for notification emails and the deletion lifecycle timings.

Direct os.environ/os.getenv usage is confined to
``load_shared_config_from_env()``; everything else receives a config object.
"""

from __future__ import annotations

from datetime import timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class DeletionPolicy(BaseModel):
    """Timings for the organisation deletion lifecycle.

    Environment variables:
        DELETION_CONFIRMATION_TTL_HOURS: confirmation link lifetime
        DELETION_GRACE_PERIOD_DAYS: confirmed → permanent purge
        DELETION_UNDO_WINDOW_HOURS: undo link lifetime after confirmation
        DELETION_MAX_CONFLICT_RETRIES: conditional-write retries per transition
    """

    model_config = {"extra": "ignore", "frozen": True}

    confirmation_ttl_hours: int = Field(
        default=24,
        gt=0,
        description="Hours the emailed confirmation link stays valid",
    )
    grace_period_days: int = Field(
        default=28,
        gt=0,
        description="Days between confirmed deletion and permanent purge",
    )
    undo_window_hours: int = Field(
        default=24,
        gt=0,
        description="Hours after confirmation during which deletion can be undone",
    )
    max_conflict_retries: int = Field(
        default=3,
        ge=1,
        description="Attempts per transition before giving up on concurrent writers",
    )

    @property
    def confirmation_ttl(self) -> timedelta:
        return timedelta(hours=self.confirmation_ttl_hours)

    @property
    def grace_period(self) -> timedelta:
        return timedelta(days=self.grace_period_days)

    @property
    def undo_window(self) -> timedelta:
        return timedelta(hours=self.undo_window_hours)

    @model_validator(mode="after")
    def validate_undo_window(self) -> DeletionPolicy:
        """The undo window must close before the grace period ends."""
        if self.undo_window >= self.grace_period:
            raise ValueError("Undo window must be shorter than the grace period")
        return self


class SharedConfig(BaseModel):
    """Configuration contract for services embedding tenantcore.

    Services extend this model with their own settings.
    """

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level for the service",
    )
    log_json: bool = Field(
        default=False,
        description="Use JSON log format (default: plain text)",
    )

    # Redis (deletion request storage)
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL (e.g., redis://localhost:6379/0)",
    )
    redis_key_prefix: str = Field(
        default="tenantcore",
        min_length=1,
        description="Prefix for all Redis keys written by tenantcore",
    )

    # Service identification
    service_name: Optional[str] = Field(
        default=None,
        description="Service name for log identification",
    )

    # Links in notification emails
    app_url: str = Field(
        default="http://localhost:3000",
        description="Base URL of the dashboard used in confirmation and undo links",
    )

    deletion: DeletionPolicy = Field(
        default_factory=DeletionPolicy,
        description="Organisation deletion lifecycle timings",
    )

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("Redis URL must start with redis://, rediss://, or unix://")
        return v

    @field_validator("app_url")
    @classmethod
    def validate_app_url(cls, v: str) -> str:
        """Links are built by appending paths, so drop any trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("App URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Convert string to LogLevel enum."""
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            try:
                return LogLevel[v.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {v}. Must be one of {[e.value for e in LogLevel]}")
        raise ValueError(f"Log level must be string or LogLevel enum, got {type(v)}")

    model_config = {
        "extra": "forbid",
    }


def _env_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes", "on")


def load_shared_config_from_env() -> SharedConfig:
    """Load shared configuration from environment variables.

    This is the ONLY place where os.getenv is allowed for shared settings.

    Environment variables:
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - LOG_JSON: Use JSON log format (true/false, default: false)
    - REDIS_URL: Redis connection URL
    - REDIS_KEY_PREFIX: Key prefix (default: tenantcore)
    - SERVICE_NAME: Service name
    - APP_URL: Dashboard base URL for email links
    - DELETION_CONFIRMATION_TTL_HOURS, DELETION_GRACE_PERIOD_DAYS,
      DELETION_UNDO_WINDOW_HOURS, DELETION_MAX_CONFLICT_RETRIES

    Returns:
        SharedConfig instance with values from environment or defaults.
    """
    import os

    deletion = DeletionPolicy(
        confirmation_ttl_hours=int(os.getenv("DELETION_CONFIRMATION_TTL_HOURS", "24")),
        grace_period_days=int(os.getenv("DELETION_GRACE_PERIOD_DAYS", "28")),
        undo_window_hours=int(os.getenv("DELETION_UNDO_WINDOW_HOURS", "24")),
        max_conflict_retries=int(os.getenv("DELETION_MAX_CONFLICT_RETRIES", "3")),
    )

    return SharedConfig(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=_env_bool(os.getenv("LOG_JSON", "false")),
        redis_url=os.getenv("REDIS_URL"),
        redis_key_prefix=os.getenv("REDIS_KEY_PREFIX", "tenantcore"),
        service_name=os.getenv("SERVICE_NAME"),
        app_url=os.getenv("APP_URL", "http://localhost:3000"),
        deletion=deletion,
    )


__all__ = [
    "DeletionPolicy",
    "LogLevel",
    "SharedConfig",
    "load_shared_config_from_env",
]
