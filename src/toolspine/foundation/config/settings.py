"""Runtime settings read from TOOLSPINE_* environment variables.

One nested settings class per concern (server, security, rate limit,
timeouts, monitoring, CORS, validation, logging), each with its own
prefix so it can also be built standalone.

Example:
    >>> from toolspine.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.server.port
    3000
    >>> settings.rate_limit.max_requests
    100

    # Overridable per process:
    # TOOLSPINE_SERVER_PORT=8080
    # TOOLSPINE_SECURITY_API_KEYS='["k1", "k2"]'
    # TOOLSPINE_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import (
    ByteSize,
    Field,
    NonNegativeFloat,
    PositiveFloat,
    PositiveInt,
    SecretStr,
    computed_field,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    """HTTP listener configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLSPINE_SERVER_",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: Annotated[int, Field(ge=0, le=65535)] = 3000
    max_body_size: ByteSize = Field(
        default=ByteSize(10 * 1024 * 1024),
        description="Largest accepted request body",
    )
    graceful_shutdown_seconds: NonNegativeFloat = 10.0


class SecuritySettings(BaseSettings):
    """Caller authentication."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLSPINE_SECURITY_",
        extra="ignore",
    )

    require_auth: bool = False
    api_keys: list[SecretStr] = Field(default_factory=list, description="Accepted caller API keys")
    protect_metadata_endpoints: bool = Field(
        default=False,
        description="Also require auth on /health, /schema and /metrics",
    )

    @computed_field
    @property
    def auth_enabled(self) -> bool:
        """Auth is active when required explicitly or when keys are configured."""
        return self.require_auth or bool(self.api_keys)


class RateLimitSettings(BaseSettings):
    """Sliding-window rate limiting per caller."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLSPINE_RATELIMIT_",
        extra="ignore",
    )

    enabled: bool = True
    max_requests: PositiveInt = Field(default=100, description="Max requests per window")
    window_seconds: PositiveFloat = Field(default=900.0, description="Window length in seconds")
    max_tracked_callers: PositiveInt = Field(default=10_000, description="Caller windows kept in memory")


class TimeoutSettings(BaseSettings):
    """Execution time budgets."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLSPINE_TIMEOUT_",
        extra="ignore",
    )

    execution_seconds: PositiveFloat = Field(default=30.0, description="Execute function budget")
    health_check_seconds: PositiveFloat = Field(default=5.0, description="User health check budget")


class MonitoringSettings(BaseSettings):
    """Metrics and history retention."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLSPINE_MONITORING_",
        extra="ignore",
    )

    enabled: bool = True
    history_size: PositiveInt = 1000
    recent_errors: PositiveInt = 10
    degraded_error_rate: Annotated[float, Field(ge=0.0, le=100.0)] = 50.0


class CorsSettings(BaseSettings):
    """Cross-origin allow-list."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLSPINE_CORS_",
        extra="ignore",
    )

    enabled: bool = True
    allow_origins: list[str] = Field(default_factory=lambda: ["*"])
    allow_methods: list[str] = Field(default_factory=lambda: ["GET", "POST", "OPTIONS"])
    allow_headers: list[str] = Field(
        default_factory=lambda: ["Content-Type", "Authorization", "X-API-Key", "X-Request-ID"]
    )


class ValidationSettings(BaseSettings):
    """Schema compiler cache and default validation options."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLSPINE_VALIDATION_",
        extra="ignore",
    )

    cache_size: PositiveInt = Field(default=1000, description="Compiled schemas kept in memory")
    cache_ttl_seconds: PositiveFloat = Field(default=300.0, description="Compiled schema lifetime")
    strip_unknown: bool = False
    transform: bool = True
    abort_early: bool = False
    metrics_window: PositiveInt = Field(default=1000, description="Validations kept for averages")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLSPINE_LOG_",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "console", "none"] = "console"
    log_requests: bool = True


class ToolspineSettings(BaseSettings):
    """Root settings for the tool runtime.

    Loads configuration from environment variables with TOOLSPINE_ prefix.
    A .env file in the working directory is read too.

    Example environment variables:
        TOOLSPINE_ENVIRONMENT=production
        TOOLSPINE_SERVER_PORT=8080
        TOOLSPINE_RATELIMIT_MAX_REQUESTS=50
        TOOLSPINE_TIMEOUT_EXECUTION_SECONDS=10
        TOOLSPINE_LOG_FORMAT=json
    """

    model_config = SettingsConfigDict(
        env_prefix="TOOLSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    environment: Literal["development", "staging", "production"] = "development"

    server: ServerSettings = Field(default_factory=ServerSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    timeout: TimeoutSettings = Field(default_factory=TimeoutSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    cors: CorsSettings = Field(default_factory=CorsSettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_env(cls, v: str) -> str:
        """Accept PRODUCTION, Production, ..."""
        return v.lower() if isinstance(v, str) else v

    @computed_field
    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @computed_field
    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache(maxsize=1)
def get_settings() -> ToolspineSettings:
    """Process-wide settings, read from the environment on first use."""
    return ToolspineSettings()


def clear_settings_cache() -> None:
    """Forget the cached settings so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
