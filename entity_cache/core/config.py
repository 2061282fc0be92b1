"""Configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Values are validated at load time.
"""

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from entity_cache.core.constants import DEFAULT_CACHE_TTL


class Settings(BaseSettings):
    """Settings loaded from environment and .env.

    All settings have defaults. validate_cache_and_telemetry rejects
    a non-positive TTL and unknown telemetry exporters.
    """

    # App
    app_name: str = "entity-cache"
    app_version: str = "1.0.0"
    debug: bool = False

    # Cache-aside behaviour (global for all entity types; services may override)
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL
    # Relation indexes hold only complete member sets when True: a cold
    # lookup-by-field writes the index from the store result and the write
    # path never creates an index, only extends one. Off by default: indexes
    # are created by the write path and may be partial.
    cache_strict_index: bool = False

    # Redis Cache
    redis_enabled: bool = True
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: SecretStr | None = None
    redis_socket_timeout: float = 5.0

    # Entity store (SQLAlchemy async URL, e.g. postgresql+asyncpg://...)
    database_url: str = ""
    database_echo: bool = False

    # OpenTelemetry
    telemetry_enabled: bool = False
    telemetry_exporter: str = "console"
    telemetry_otlp_endpoint: str | None = None
    telemetry_sample_rate: float = 1.0
    telemetry_environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_cache_and_telemetry(self) -> "Settings":
        """Validate cache TTL and telemetry exporter."""
        if self.cache_ttl_seconds <= 0:
            raise ValueError(
                f"cache_ttl_seconds must be a positive number of seconds, got: {self.cache_ttl_seconds}"
            )
        if self.telemetry_exporter not in ("console", "otlp", "none"):
            raise ValueError(
                f"telemetry_exporter must be 'console', 'otlp' or 'none', got: {self.telemetry_exporter!r}"
            )
        if not 0.0 <= self.telemetry_sample_rate <= 1.0:
            raise ValueError("telemetry_sample_rate must be between 0.0 and 1.0")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached settings (single instance per process).

    Validation runs on first call, not at import time. In tests, call
    get_settings.cache_clear() before overriding env vars so the next
    get_settings() uses the new values.

    Returns:
        Loaded and validated Settings instance.
    """
    return Settings()
