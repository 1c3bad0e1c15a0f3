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

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production injects via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_llm_settings() -> "LLMSettings":
    """Build LLM settings from environment.

    BaseSettings reads its fields from the environment, but static type
    checkers treat required fields as constructor arguments.
    """

    return LLMSettings()  # type: ignore[call-arg]


def _build_app_settings() -> "AppSettings":
    return AppSettings()  # type: ignore[call-arg]


def _build_store_settings() -> "QuotaStoreSettings":
    return QuotaStoreSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class LLMSettings(BaseSettings):
    """Upstream generative-language provider configuration.

    The API key is optional at load time: a missing key is reported per
    request by the client factory instead of crashing the process.
    """

    provider: str = Field(
        "gemini",
        description="LLM provider name (only 'gemini' is supported)",
    )
    model: str = Field(
        "gemini-2.5-flash",
        description="Model id used in the generateContent path",
    )
    api_key: str | None = Field(
        None,
        validation_alias=AliasChoices("LLM_API_KEY", "GEMINI_API_KEY"),
        description="Provider API key, sent as the 'key' query parameter",
    )
    base_url: str = Field(
        "https://generativelanguage.googleapis.com/v1beta",
        description="Provider API root",
    )
    timeout_seconds: float = Field(
        20.0,
        description="Upstream request timeout in seconds",
        gt=0,
    )
    enable_search_tool: bool = Field(
        False,
        description="Attach the google_search grounding tool to each request",
    )
    enforce_response_schema: bool = Field(
        True,
        description="Send the verdict JSON schema as generationConfig.responseSchema",
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        case_sensitive=False,
        populate_by_name=True,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    daily_quota_limit: int = Field(
        3,
        description="Maximum verifications allowed per caller per UTC day",
        ge=1,
    )
    quota_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* (and Retry-After when throttled) headers",
    )
    client_ip_headers: str = Field(
        "x-nf-client-connection-ip,x-forwarded-for,x-real-ip",
        description="Comma-separated request headers checked, in order, for the caller address",
    )
    client_ip_fallback_to_peer: bool = Field(
        False,
        description="Use the socket peer address when no client-address header is present",
    )
    max_query_chars: int = Field(
        1000,
        description="Maximum length of the userQuery claim in characters",
        ge=1,
    )
    pass_through_mode: str = Field(
        "verdict",
        description="'verdict' returns the generated verdict JSON, 'envelope' the raw provider response",
        pattern="^(verdict|envelope)$",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class QuotaStoreSettings(BaseSettings):
    """Persistent usage-counter store configuration."""

    backend: str = Field(
        "firestore",
        description="Counter store backend: 'firestore' or 'memory' (single process only)",
        pattern="^(firestore|memory)$",
    )
    collection: str = Field(
        "rateLimits",
        description="Firestore collection holding the daily usage documents",
    )
    credentials_base64: str | None = Field(
        None,
        validation_alias=AliasChoices(
            "QUOTA_STORE_CREDENTIALS_BASE64",
            "FIREBASE_SERVICE_ACCOUNT_BASE64",
        ),
        description="Base64-encoded service-account JSON for Firestore",
    )
    project_id: str | None = Field(
        None,
        description="Firestore project id (defaults to the credentials' project_id)",
    )

    model_config = SettingsConfigDict(
        env_prefix="QUOTA_STORE_",
        case_sensitive=False,
        populate_by_name=True,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="'json' or 'plain'")
    output: str = Field("stdout", description="'stdout' or 'file'")
    file_path: str | None = Field("logs/app.log", description="Log file path when output=file")
    max_bytes: int = Field(0, description="Rotate file logs at this size (0 disables rotation)")
    backup_count: int = Field(5, description="Rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to accept and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.

    Environments:
    - development: Local development
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    llm: LLMSettings = Field(default_factory=_build_llm_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    store: QuotaStoreSettings = Field(default_factory=_build_store_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Nested settings are created via default_factory so env loading works.
settings = Settings()
