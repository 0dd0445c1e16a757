"""Environment-driven settings for provisor callers.

The library primitives take explicit arguments and never read settings
themselves; the CLI (and any deployment script built on provisor) reads
``ProvisorSettings`` once at startup and passes values down.

Examples:
    >>> from provisor.core.settings import get_settings
    >>> settings = get_settings()          # PROVISOR_* env vars + .env
    >>> settings.retry_max_attempts
    3
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProvisorSettings(BaseSettings):
    """Settings shared by provisor entry points.

    Fields
    ──────
    retry_max_attempts  : Attempts per retried action (>= 1)
    retry_initial_delay : Seconds before the second attempt
    retry_multiplier    : Delay growth factor per failed attempt
    log_level           : Structlog log level
    log_json            : JSON output (None = auto-detect from tty)
    log_file            : Append log events to this file as well
    resource_group      : Target resource group
    location            : Target region
    key_vault_name      : Vault used for secret round-trips
    """

    model_config = SettingsConfigDict(
        env_prefix="PROVISOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Retry ────────────────────────────────────────────────────
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_initial_delay: float = Field(default=2.0, ge=0)
    retry_multiplier: float = Field(default=2.0, ge=1)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None
    log_file: Path | None = None

    # ── Deployment target ────────────────────────────────────────
    resource_group: str | None = None
    location: str = "westus2"
    key_vault_name: str | None = None


@lru_cache
def get_settings() -> ProvisorSettings:
    """Return the process-wide settings instance."""
    return ProvisorSettings()
