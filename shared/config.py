"""
Shared configuration management for the Calendar MCP Access Layer.
"""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local", validation_alias=AliasChoices("ACCESS_ENV", "env"))
    log_level: str = Field(default="info", validation_alias=AliasChoices("ACCESS_LOG_LEVEL", "log_level"))

    # Binding
    host: str = Field(default="127.0.0.1", validation_alias=AliasChoices("HOST", "host"))


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


class GateSettings(BaseConfig):
    """
    Admission-control settings read from the environment.

    Durations are expressed in milliseconds to match the wire format of the
    credential endpoints. Use ``AccessPolicy.from_settings`` to obtain the
    immutable snapshot the request path reads.
    """

    enabled: bool = Field(default=False, validation_alias=AliasChoices("CONVEX_MODE", "enabled"))
    api_key: str = Field(default="", validation_alias=AliasChoices("MCP_API_KEY", "api_key"))
    allowed_origins: str = Field(default="", validation_alias=AliasChoices("ALLOWED_ORIGINS", "allowed_origins"))

    # Rate limiting
    max_requests_per_user: int = Field(
        default=100, validation_alias=AliasChoices("RATE_LIMIT_REQUESTS_PER_USER", "max_requests_per_user")
    )
    max_token_injections_per_ip: int = Field(
        default=10,
        validation_alias=AliasChoices("RATE_LIMIT_TOKEN_INJECTIONS_PER_IP", "max_token_injections_per_ip"),
    )
    rate_limit_window_ms: int = Field(
        default=15 * 60 * 1000, validation_alias=AliasChoices("RATE_LIMIT_WINDOW_MS", "rate_limit_window_ms")
    )
    rate_limit_cleanup_interval_ms: int = Field(
        default=60 * 1000,
        validation_alias=AliasChoices("RATE_LIMIT_CLEANUP_INTERVAL_MS", "rate_limit_cleanup_interval_ms"),
    )

    # Token validation
    min_expiry_buffer_ms: int = Field(
        default=5 * 60 * 1000, validation_alias=AliasChoices("TOKEN_MIN_EXPIRY_BUFFER_MS", "min_expiry_buffer_ms")
    )
    expiry_warning_threshold_ms: int = Field(
        default=10 * 60 * 1000,
        validation_alias=AliasChoices("TOKEN_EXPIRY_WARNING_MS", "expiry_warning_threshold_ms"),
    )
    expiry_buffer_ms: int = Field(
        default=5 * 60 * 1000, validation_alias=AliasChoices("TOKEN_EXPIRY_BUFFER_MS", "expiry_buffer_ms")
    )

    # Cleanup
    cleanup_interval_ms: int = Field(
        default=30 * 60 * 1000, validation_alias=AliasChoices("CLEANUP_INTERVAL_MS", "cleanup_interval_ms")
    )
    stale_threshold_ms: int = Field(
        default=24 * 60 * 60 * 1000,
        validation_alias=AliasChoices("CLEANUP_STALE_THRESHOLD_MS", "stale_threshold_ms"),
    )

    # Request limits
    max_request_bytes: int = Field(
        default=10 * 1024 * 1024, validation_alias=AliasChoices("MAX_REQUEST_BYTES", "max_request_bytes")
    )

    # OAuth client used when building per-tenant Google credentials
    google_client_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("GOOGLE_CLIENT_ID", "google_client_id")
    )
    google_client_secret: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("GOOGLE_CLIENT_SECRET", "google_client_secret")
    )


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)


def get_gate_settings(**overrides) -> GateSettings:
    """Read admission-control settings, applying explicit overrides on top."""
    return GateSettings(**overrides)
