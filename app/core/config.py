"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_rate_limit_settings() -> "RateLimitSettings":
    return RateLimitSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


def parse_origins(origins: str | None) -> list[str]:
    """Split a comma-separated origins string into a clean list.

    Examples:
        >>> parse_origins("http://a.test, http://b.test,")
        ['http://a.test', 'http://b.test']
        >>> parse_origins(None)
        []
    """
    if not origins:
        return []
    return [origin.strip() for origin in origins.split(",") if origin.strip()]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    allowed_origins: str = Field(
        "http://127.0.0.1:5173",
        description="Comma-separated list of origins allowed by CORS",
        validation_alias=AliasChoices("ALLOWED_ORIGINS", "APP_ALLOWED_ORIGINS"),
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
        populate_by_name=True,
    )

    @property
    def allowed_origins_list(self) -> list[str]:
        return parse_origins(self.allowed_origins)


class RateLimitSettings(BaseSettings):
    """Scan admission control configuration.

    Quota state is per-process: running several workers multiplies the
    effective limit.
    """

    max_requests: int = Field(
        3,
        description="Maximum number of admitted scan requests per window (per client)",
        ge=1,
        validation_alias=AliasChoices("RATE_LIMIT_MAX", "RATE_LIMIT_MAX_REQUESTS"),
    )
    window_minutes: int = Field(
        60,
        description="Trailing window length in minutes",
        ge=1,
    )
    sweep_interval_minutes: int = Field(
        30,
        description="Interval between eviction sweeps of idle clients",
        ge=1,
    )
    safety_margin_minutes: int = Field(
        60,
        description="Extra idle time beyond the window before a client's state is evicted",
        ge=0,
    )
    gated_path: str = Field(
        "/api/scan",
        description="Path prefix subject to admission control",
    )
    gated_method: str = Field(
        "POST",
        description="HTTP method subject to admission control",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
        populate_by_name=True,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: 'json' or 'plain'")
    output: str = Field("stdout", description="Log destination: 'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to accept and return the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
