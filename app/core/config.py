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

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Production might inject via env vars only
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ first
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    BaseSettings reads its values from the environment, but static type
    checkers treat fields as constructor arguments, hence the ignore.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_store_settings() -> "StoreSettings":
    return StoreSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class StoreSettings(BaseSettings):
    """Key-value store backend configuration.

    ``memory`` keeps everything in-process (development, tests). ``firebase``
    talks to a Firebase Realtime Database over its REST API.
    """

    backend: str = Field(
        "memory",
        description="Store backend name: memory or firebase",
    )
    base_url: str | None = Field(
        None,
        description="Realtime Database root URL (e.g. https://<project>.firebaseio.com)",
    )
    auth_token: str | None = Field(
        None,
        description="Database secret or ID token sent as the auth query parameter",
    )
    timeout_seconds: float = Field(
        10.0,
        description="HTTP timeout for store round trips in seconds",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the correlation id",
    )
    extra_redacted_keys: str | None = Field(
        None,
        description="Comma-separated field names to mask in logs, on top of the built-in set",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for authentication",
    )

    message_cooldown_ms: int = Field(
        2000,
        description="Minimum delay between two accepted messages from one sender",
        ge=0,
    )
    max_message_chars: int = Field(
        1999,
        description="Maximum message length after sanitization",
        ge=1,
    )
    placeholder_chatroom: str = Field(
        "Unanimity",
        description="Default chatroom name shown before the user picks a room; sending there is refused",
    )

    user_name_min_chars: int = Field(
        5,
        description="Minimum username length (inclusive)",
        ge=1,
    )
    user_name_max_chars: int = Field(
        10,
        description="Maximum username length (inclusive)",
        ge=1,
    )
    index_cas_attempts: int = Field(
        3,
        description="Compare-and-set attempts for the username index write",
        ge=1,
    )
    rename_compensate_on_partial_failure: bool = Field(
        False,
        description="Revert the user record once when the username index write fails",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
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
    app: AppSettings = Field(default_factory=_build_app_settings)
    store: StoreSettings = Field(default_factory=_build_store_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Nested settings are created via default_factory so env loading works.
settings = Settings()
