"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
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

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ first
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_llm_settings() -> "LLMSettings":
    """Build LLM settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return LLMSettings()  # type: ignore[call-arg]


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    See _build_llm_settings() for rationale about the type ignore.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class LLMSettings(BaseSettings):
    """LLM provider configuration for the yes/no decision classifier.

    The API key is optional: without one the classifier reports itself
    unavailable and only workflows with a decision override can complete.
    """

    provider: str = Field(
        "openai",
        description="LLM provider name (e.g., openai)",
    )
    model: str = Field(
        "gpt-4o-mini",
        description="Model name used for classification",
    )
    api_key: str | None = Field(
        None,
        description="API key for cloud providers (required for OpenAI)",
    )
    base_url: str | None = Field(
        None,
        description="Custom API endpoint (OpenAI-compatible gateways)",
    )
    timeout_seconds: float = Field(
        15.0,
        description="Request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-IP rate limiting on public endpoints",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers",
    )
    rate_limit_window_ms: int = Field(
        60_000,
        description="Fixed window length in milliseconds",
        ge=1,
    )
    rate_limit_sweep_threshold: int = Field(
        10_000,
        description="Table size above which lapsed windows are swept",
        ge=1,
    )
    policy_rate_limit_requests: int = Field(
        100,
        description="Requests per window allowed on policy check endpoints",
        ge=1,
    )
    workflow_rate_limit_requests: int = Field(
        60,
        description="Requests per window allowed on ticket workflow endpoints",
        ge=1,
    )
    decide_rate_limit_requests: int = Field(
        20,
        description="Requests per window allowed on the decide endpoint",
        ge=1,
    )
    track_rate_limit_requests: int = Field(
        300,
        description="Requests per window allowed on the track and metrics endpoints",
        ge=1,
    )

    idempotency_ttl_seconds: int = Field(
        24 * 60 * 60,
        description="How long workflow responses are replayed for the same key",
        ge=1,
    )

    max_body_kb: int = Field(
        64,
        description="Maximum accepted JSON body size in kilobytes",
        ge=1,
    )

    cors_allow_origins: str = Field(
        "*",
        description="Comma-separated list of allowed CORS origins",
    )

    track_allowed_origins: str = Field(
        "",
        description="Comma-separated origins allowed to post events; empty uses the built-in host list",
    )
    metrics_admin_token: str | None = Field(
        None,
        description="Token unlocking full metrics via X-Metrics-Token; unset allows localhost only",
    )
    metrics_max_events: int = Field(
        5000,
        description="Recent events kept for windowed metrics",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        0,
        description="Rotate the log file at this size (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    llm: LLMSettings = Field(default_factory=_build_llm_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
