"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a ``validate_credentials()``
startup gate that enforces credential presence in production mode.

This module has no imports from the rest of the ``ratecard`` package so it
can be loaded first at startup.
"""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path

import structlog
from pydantic import Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    ``SecretStr`` fields prevent accidental leaks in logs or error output.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    port: int = 8000
    base_url: str = "http://localhost:8000"

    # -- Storage ---------------------------------------------------------------
    database_path: Path = Path("data/ratecards.db")

    # -- Advisory / Anthropic --------------------------------------------------
    anthropic_api_key: SecretStr = SecretStr("")
    advisory_model: str = "claude-sonnet-4-5-20250929"
    advisory_timeout_seconds: float = Field(default=30, gt=0)
    advisory_max_tokens: int = Field(default=1500, gt=0)

    # -- Cache TTLs (seconds) --------------------------------------------------
    advisory_cache_ttl_seconds: int = Field(default=3600, ge=0)
    catalog_cache_ttl_seconds: int = Field(default=600, ge=0)
    list_cache_ttl_seconds: int = Field(default=300, ge=0)
    public_cache_ttl_seconds: int = Field(default=1800, ge=0)

    # -- Pricing / sharing -----------------------------------------------------
    public_expiry_days: int = Field(default=180, ge=1)
    apply_seasonal_pricing: bool = False

    # -- Observability ---------------------------------------------------------
    sentry_dsn: str = ""


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Only the structured errors list: the exception text may hold secrets.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_credentials(settings: Settings) -> None:
    """Enforce credential presence at startup.

    In **production** mode the application exits with a clear error block if
    any required credential is missing.  In **development** mode each missing
    credential is logged as a warning; without an advisory key every catalog
    is priced by the local market model.

    Args:
        settings: The loaded application settings.
    """
    errors: list[str] = []

    if not settings.anthropic_api_key.get_secret_value():
        errors.append("ANTHROPIC_API_KEY is empty or not set")

    if not errors:
        logger.info("credential_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("credential_missing", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Missing required credentials for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("credential_missing_dev", detail=err)
