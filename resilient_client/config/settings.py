"""
Configuration management for the resilient API client.

This module provides centralized configuration loading and validation using
Pydantic settings. Values are loaded from environment variables or .env
files, with environment-specific overrides.

Two layers of configuration exist:
- Settings: everything the hosting application configures from the
  environment (base URL, credential store, logging, tracing)
- ClientConfig: the three options the request layer itself recognizes
  (retry budget, initial retry delay, per-attempt timeout)
"""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_API_BASE_URL = "http://localhost:8080"
DEFAULT_REFRESH_PATH = "/api/auth/refresh"


class Environment(str, Enum):
    """Supported deployment environments."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


@dataclass(frozen=True)
class ClientConfig:
    """
    Options recognized by the request layer.

    Attributes:
        max_retries: Retries allowed after the initial attempt for a
            transient failure. Default is 3, so at most 4 attempts.
        initial_retry_delay: Base backoff delay in seconds. Retry N waits
            initial_retry_delay * 2^(N-1) plus up to initial_retry_delay
            of jitter. Default is 1.0.
        timeout: Per-attempt timeout in seconds. Default is 30.0.
        max_retry_delay: Optional cap on the exponential component.
    """
    max_retries: int = 3
    initial_retry_delay: float = 1.0
    timeout: float = 30.0
    max_retry_delay: Optional[float] = None

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.initial_retry_delay < 0:
            raise ValueError("initial_retry_delay cannot be negative")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")


def _detect_environment() -> Environment:
    """
    Detect the current environment from the ENVIRONMENT variable.

    Returns:
        Environment: The detected environment, defaults to DEVELOPMENT if not set.
    """
    env_value = os.environ.get("ENVIRONMENT", "development").lower().strip()
    try:
        return Environment(env_value)
    except ValueError:
        return Environment.DEVELOPMENT


def _get_env_files(environment: Environment) -> Tuple[str, ...]:
    """
    Get the list of .env files to load for the given environment.

    Files are loaded in order, with later files overriding earlier ones.

    Args:
        environment: The target environment.

    Returns:
        Tuple of .env file paths to load.
    """
    env_file_map = {
        Environment.DEVELOPMENT: ".env.development",
        Environment.STAGING: ".env.staging",
        Environment.PRODUCTION: ".env.production",
    }
    env_specific_file = env_file_map.get(environment, ".env.development")
    return (".env", env_specific_file)


class Settings(BaseSettings):
    """
    Client settings loaded from environment variables.

    Environment-specific configuration is supported through
    .env.development, .env.staging and .env.production files. The
    ENVIRONMENT variable determines which file to load.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development, staging, production)"
    )

    # Backend
    api_base_url: Optional[str] = Field(
        default=None,
        description="Base URL of the backend API; required in production"
    )
    refresh_path: str = Field(
        default=DEFAULT_REFRESH_PATH,
        description="Path of the credential refresh endpoint"
    )

    # Request layer
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries after the initial attempt for transient failures"
    )
    initial_retry_delay_ms: int = Field(
        default=1000,
        ge=0,
        le=60000,
        description="Base backoff delay in milliseconds"
    )
    max_retry_delay_ms: Optional[int] = Field(
        default=None,
        ge=0,
        description="Optional cap on the exponential backoff component"
    )
    request_timeout_ms: int = Field(
        default=30000,
        ge=1,
        le=600000,
        description="Per-attempt request timeout in milliseconds"
    )

    # Credential store
    credential_store_type: str = Field(
        default="memory",
        description="Credential store type: 'memory' or 'redis'"
    )
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL for persistent credential storage"
    )
    credential_key_prefix: str = Field(
        default="auth",
        description="Key prefix for credentials stored in Redis"
    )

    # Observability
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    otel_endpoint: Optional[str] = Field(
        default=None,
        description="OpenTelemetry collector endpoint URL"
    )
    otel_service_name: str = Field(
        default="resilient-client",
        description="Service name for OpenTelemetry traces"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate that api_base_url, when given, is an HTTP/HTTPS URL."""
        if v is None:
            return v
        v = v.strip()
        if not v:
            return None
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("api_base_url must be a valid HTTP/HTTPS URL")
        return v.rstrip("/")

    @field_validator("refresh_path")
    @classmethod
    def validate_refresh_path(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith("/") and not v.startswith("http"):
            raise ValueError("refresh_path must be an absolute path or URL")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v

    @field_validator("credential_store_type")
    @classmethod
    def validate_credential_store_type(cls, v: str) -> str:
        """Validate that credential_store_type is either 'memory' or 'redis'."""
        v = v.strip().lower()
        if v not in {"memory", "redis"}:
            raise ValueError("credential_store_type must be 'memory' or 'redis'")
        return v

    @model_validator(mode="after")
    def validate_environment_requirements(self) -> "Settings":
        """Validate settings that are only mandatory outside development."""
        if self.environment == Environment.PRODUCTION and not self.api_base_url:
            raise ValueError(
                "api_base_url is required in the production environment"
            )
        if self.credential_store_type == "redis" and not self.redis_url:
            if self.environment != Environment.DEVELOPMENT:
                raise ValueError(
                    "redis_url is required when credential_store_type is 'redis' "
                    "in non-development environments"
                )
        return self

    @property
    def effective_base_url(self) -> str:
        return self.api_base_url or DEFAULT_API_BASE_URL

    def to_client_config(self) -> ClientConfig:
        """Convert millisecond settings into the request layer's ClientConfig."""
        max_delay = None
        if self.max_retry_delay_ms is not None:
            max_delay = self.max_retry_delay_ms / 1000.0
        return ClientConfig(
            max_retries=self.max_retries,
            initial_retry_delay=self.initial_retry_delay_ms / 1000.0,
            timeout=self.request_timeout_ms / 1000.0,
            max_retry_delay=max_delay,
        )


class ConfigurationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None,
                 invalid_fields: Optional[dict] = None):
        self.message = message
        self.missing_fields = missing_fields or []
        self.invalid_fields = invalid_fields or {}
        super().__init__(self.format_error_message())

    def format_error_message(self) -> str:
        """Format a descriptive error message listing all issues."""
        parts = [self.message]

        if self.missing_fields:
            parts.append(f"\nMissing required fields: {', '.join(self.missing_fields)}")

        if self.invalid_fields:
            invalid_parts = [f"  - {field}: {error}" for field, error in self.invalid_fields.items()]
            parts.append("\nInvalid field values:\n" + "\n".join(invalid_parts))

        return "".join(parts)


def create_settings_for_environment(environment: Optional[Environment] = None) -> Settings:
    """
    Factory function to create Settings for a specific environment.

    Args:
        environment: Optional environment override. If not provided, detected from
                    the ENVIRONMENT variable.

    Returns:
        Settings: Validated settings for the specified environment.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    if environment is None:
        environment = _detect_environment()

    env_files = _get_env_files(environment)
    existing_env_files = [f for f in env_files if Path(f).exists()]
    if not existing_env_files:
        existing_env_files = list(env_files)

    try:
        class EnvironmentSettings(Settings):
            model_config = SettingsConfigDict(
                env_file=tuple(existing_env_files),
                env_file_encoding="utf-8",
                case_sensitive=False,
                extra="ignore"
            )

        return EnvironmentSettings(environment=environment)
    except Exception as e:
        missing_fields = []
        invalid_fields = {}

        if hasattr(e, 'errors'):
            for error in e.errors():
                field_name = '.'.join(str(loc) for loc in error.get('loc', [])) or "settings"
                error_type = error.get('type', '')
                error_msg = error.get('msg', str(error))

                if error_type == 'missing':
                    missing_fields.append(field_name)
                else:
                    invalid_fields[field_name] = error_msg

        raise ConfigurationError(
            f"Failed to load configuration for environment '{environment.value}'",
            missing_fields=missing_fields,
            invalid_fields=invalid_fields
        ) from e


# Global settings cache
_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the settings singleton.

    Settings are loaded once and cached for subsequent calls.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    global _settings_cache

    if _settings_cache is None:
        _settings_cache = create_settings_for_environment()

    return _settings_cache


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    This is primarily useful for testing to allow reloading settings
    with different environment variables.
    """
    global _settings_cache
    _settings_cache = None


def validate_startup() -> None:
    """
    Validate settings before the first request is sent.

    Raises:
        ConfigurationError: If any required settings are missing or invalid.
    """
    settings = get_settings()
    validation_errors = {}

    if settings.environment == Environment.PRODUCTION:
        base_url = settings.effective_base_url
        if "localhost" in base_url or "127.0.0.1" in base_url:
            validation_errors["api_base_url"] = (
                "Production environment requires a non-localhost API base URL"
            )
        elif not base_url.startswith("https://"):
            validation_errors["api_base_url"] = (
                "Production environment requires an https:// API base URL"
            )

    if settings.max_retry_delay_ms is not None:
        if settings.max_retry_delay_ms < settings.initial_retry_delay_ms:
            validation_errors["max_retry_delay_ms"] = (
                "max_retry_delay_ms cannot be lower than initial_retry_delay_ms"
            )

    if validation_errors:
        raise ConfigurationError(
            "Configuration validation failed during startup",
            invalid_fields=validation_errors
        )
