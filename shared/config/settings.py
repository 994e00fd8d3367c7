"""
Centralized configuration management for Linkshelf services.
Uses Pydantic Settings for validation and type safety.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppBaseSettings(BaseSettings):
    """Base settings with shared configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class DatabaseSettings(AppBaseSettings):
    """Database configuration settings."""

    database_url: Optional[str] = Field(
        default=None,
        validation_alias="DATABASE_URL",
    )
    postgres_user: str = Field(
        default="postgres",
        validation_alias="POSTGRES_USER",
    )
    postgres_password: str = Field(
        default="postgres",
        validation_alias="POSTGRES_PASSWORD",
    )
    postgres_db: str = Field(
        default="linkshelf",
        validation_alias="POSTGRES_DB",
    )
    postgres_host: str = Field(
        default="postgres",
        validation_alias="POSTGRES_HOST",
    )
    postgres_port: int = Field(
        default=5432,
        validation_alias="POSTGRES_PORT",
    )

    @property
    def url(self) -> str:
        """DATABASE_URL when set, otherwise a URL built from the POSTGRES_* parts."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


class RedisSettings(AppBaseSettings):
    """Redis configuration settings."""

    redis_url: Optional[str] = Field(
        default=None,
        validation_alias="REDIS_URL",
    )
    redis_host: str = Field(
        default="redis",
        validation_alias="REDIS_HOST",
    )
    redis_port: int = Field(
        default=6379,
        validation_alias="REDIS_PORT",
    )
    redis_db: int = Field(
        default=0,
        validation_alias="REDIS_DB",
    )
    redis_password: Optional[str] = Field(
        default=None,
        validation_alias="REDIS_PASSWORD",
    )
    redis_timeout: float = Field(
        default=5.0,
        validation_alias="REDIS_TIMEOUT",
    )


class TelegramSettings(AppBaseSettings):
    """Telegram Bot API settings."""

    token: Optional[str] = Field(
        default=None,
        validation_alias="TELEGRAM_TOKEN",
    )
    api_base: str = Field(
        default="https://api.telegram.org",
        validation_alias="TELEGRAM_API_BASE",
    )
    poll_timeout: int = Field(
        default=30,
        validation_alias="TELEGRAM_POLL_TIMEOUT",
    )

    @validator("api_base")
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")


class ServiceSettings(AppBaseSettings):
    """Service-specific configuration settings."""

    http_timeout: float = Field(
        default=15.0,
        validation_alias="HTTP_TIMEOUT",
    )
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        validation_alias="USER_AGENT",
    )
    rate_limit_max: int = Field(
        default=5,
        validation_alias="RATE_LIMIT_MAX",
    )
    rate_limit_window_ms: int = Field(
        default=60_000,
        validation_alias="RATE_LIMIT_WINDOW_MS",
    )
    rate_limit_backend: str = Field(
        default="memory",
        validation_alias="RATE_LIMIT_BACKEND",
    )
    rate_limit_cleanup_interval: float = Field(
        default=300.0,
        validation_alias="RATE_LIMIT_CLEANUP_INTERVAL",
    )
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        validation_alias="CORS_ORIGINS",
    )

    @validator("rate_limit_max", "rate_limit_window_ms")
    def must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("Rate limit values must be positive")
        return v

    @validator("rate_limit_backend")
    def validate_backend(cls, v):
        backend = v.strip().lower()
        if backend not in ("memory", "redis"):
            raise ValueError(f"Unknown rate limit backend: {v}")
        return backend

    @property
    def cors_origin_list(self) -> List[str]:
        """Parse the comma-separated CORS origins."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


class LoggingSettings(AppBaseSettings):
    """Logging configuration settings."""

    level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
    )
    include_correlation_id: bool = Field(
        default=True,
        validation_alias="LOG_INCLUDE_CORRELATION_ID",
    )
    json_logs: bool = Field(
        default=False,
        validation_alias="JSON_LOGS",
    )


class Settings(AppBaseSettings):
    """Main settings class that combines all configuration sections."""

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    service: ServiceSettings = Field(default_factory=ServiceSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    service_name: str = Field(
        default="linkshelf",
        validation_alias="SERVICE_NAME",
    )
    environment: str = Field(
        default="development",
        validation_alias="ENVIRONMENT",
    )
    version: str = Field(
        default="1.0.0",
        validation_alias="SERVICE_VERSION",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def get_database_url() -> str:
    """Get the database URL."""
    return get_settings().database.url


def get_redis_url() -> str:
    """Get the Redis URL, built from its parts when REDIS_URL is unset."""
    redis_settings = get_settings().redis
    if redis_settings.redis_url:
        return redis_settings.redis_url
    auth = f":{redis_settings.redis_password}@" if redis_settings.redis_password else ""
    return f"redis://{auth}{redis_settings.redis_host}:{redis_settings.redis_port}/{redis_settings.redis_db}"
