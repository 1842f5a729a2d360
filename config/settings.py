"""
Configuration management for the device tracking backend.

This module provides centralized configuration loading and validation using
Pydantic settings. The store address, listen port and shared API secret are
required; everything else has a working default.

The service refuses to start when a required value is missing: the
bootstrap catches ConfigurationError, logs the missing and invalid fields,
and exits the process.
"""

import os
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Optional, List, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Supported deployment environments."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


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
    Get the .env files to load for the given environment.

    The base .env file is loaded first, then the environment-specific
    file overrides it.
    """
    env_file_map = {
        Environment.DEVELOPMENT: ".env.development",
        Environment.STAGING: ".env.staging",
        Environment.PRODUCTION: ".env.production",
    }
    return (".env", env_file_map.get(environment, ".env.development"))


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Required variables:
    - ELASTIC_ENDPOINT: address of the coordinate store
    - PORT: HTTP listen port
    - API_KEY: shared secret expected in the X-API-Key header

    Environment-specific overrides are read from .env.development,
    .env.staging or .env.production depending on ENVIRONMENT.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development, staging, production)"
    )

    # Coordinate store
    elastic_endpoint: str = Field(
        ...,
        description="Elasticsearch endpoint URL for the coordinate store"
    )
    elastic_api_key: Optional[str] = Field(
        default=None,
        description="Elasticsearch API key, if the cluster requires one"
    )
    coordinates_index: str = Field(
        default="coordinates",
        description="Index holding submitted coordinate records"
    )
    store_connect_max_attempts: int = Field(
        default=6,
        ge=1,
        le=100,
        description="Connection attempts at startup before the process exits"
    )
    store_connect_retry_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        le=300,
        description="Fixed wait between startup connection attempts"
    )
    store_request_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        le=120,
        description="Per-request timeout for the store client"
    )
    max_list_size: int = Field(
        default=10000,
        ge=1,
        le=10000,
        description="Maximum number of records returned when listing a device"
    )

    # HTTP server
    port: int = Field(
        ...,
        ge=1,
        le=65535,
        description="Port the HTTP server listens on"
    )
    api_key: str = Field(
        ...,
        description="Shared secret required in the X-API-Key header"
    )

    # Device trigger tracking
    trigger_window_seconds: int = Field(
        default=30000,
        ge=1,
        description="Length of the window opened by a device trigger"
    )
    sweep_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="How often expired trigger entries are removed"
    )

    # Observability
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("elastic_endpoint")
    @classmethod
    def validate_elastic_endpoint(cls, v: str) -> str:
        """Validate that elastic_endpoint is a non-empty HTTP/HTTPS URL."""
        if not v or not v.strip():
            raise ValueError("elastic_endpoint cannot be empty")
        v = v.strip().strip('"')
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("elastic_endpoint must be a valid HTTP/HTTPS URL")
        return v

    @field_validator("elastic_api_key")
    @classmethod
    def validate_elastic_api_key(cls, v: Optional[str]) -> Optional[str]:
        """Treat a blank API key as not configured."""
        if v is None:
            return None
        v = v.strip().strip('"')
        return v or None

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """Validate that the shared secret is not empty."""
        if not v or not v.strip():
            raise ValueError("api_key cannot be empty")
        return v.strip()

    @field_validator("coordinates_index")
    @classmethod
    def validate_coordinates_index(cls, v: str) -> str:
        """Index names must be lowercase and non-empty."""
        v = v.strip()
        if not v:
            raise ValueError("coordinates_index cannot be empty")
        if v != v.lower():
            raise ValueError("coordinates_index must be lowercase")
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

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v: List[str]) -> List[str]:
        """Validate CORS origins format and reject wildcard patterns."""
        validated_origins = []
        for origin in v:
            origin = origin.strip()
            if origin == "*" or "*" in origin:
                raise ValueError(
                    f"Wildcard patterns are not allowed in CORS origins: {origin}. "
                    "Specify exact frontend domains."
                )
            if not (origin.startswith("http://") or origin.startswith("https://")):
                raise ValueError(
                    f"Invalid CORS origin format: {origin}. "
                    "Must start with http:// or https://"
                )
            validated_origins.append(origin)
        return validated_origins

    @property
    def trigger_window(self) -> timedelta:
        """The trigger window as a timedelta."""
        return timedelta(seconds=self.trigger_window_seconds)


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
    Create Settings for a specific environment.

    Detects the environment from the ENVIRONMENT variable when not given
    and loads the matching .env files.

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

        return EnvironmentSettings()
    except Exception as e:
        missing_fields = []
        invalid_fields = {}

        if hasattr(e, 'errors'):
            for error in e.errors():
                field_name = '.'.join(str(loc) for loc in error.get('loc', []))
                if error.get('type', '') == 'missing':
                    missing_fields.append(field_name)
                else:
                    invalid_fields[field_name] = error.get('msg', str(error))

        raise ConfigurationError(
            f"Failed to load configuration for environment '{environment.value}'",
            missing_fields=missing_fields,
            invalid_fields=invalid_fields
        ) from e


_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the application settings, loading them on first use.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    global _settings_cache

    if _settings_cache is None:
        _settings_cache = create_settings_for_environment()

    return _settings_cache


def clear_settings_cache() -> None:
    """Clear the settings cache so the next get_settings() reloads."""
    global _settings_cache
    _settings_cache = None


def validate_startup(settings: Optional[Settings] = None) -> Settings:
    """
    Validate settings before the server starts accepting requests.

    Beyond field validation, production deployments must configure a
    non-localhost CORS origin.

    Raises:
        ConfigurationError: If any setting is missing or invalid.
    """
    settings = settings or get_settings()
    validation_errors = {}

    if settings.environment == Environment.PRODUCTION:
        localhost_only = all(
            "localhost" in origin or "127.0.0.1" in origin
            for origin in settings.cors_origins
        )
        if localhost_only:
            validation_errors["cors_origins"] = (
                "Production environment requires non-localhost CORS origins."
            )

    if settings.sweep_interval_seconds > settings.trigger_window_seconds:
        validation_errors["sweep_interval_seconds"] = (
            "Sweep interval must not exceed the trigger window"
        )

    if validation_errors:
        raise ConfigurationError(
            "Configuration validation failed during startup",
            invalid_fields=validation_errors
        )

    return settings
