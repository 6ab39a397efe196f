"""Centralized configuration management using pydantic-settings.

Configuration is loaded from environment variables with sensible defaults.
All settings can be overridden via environment variables or a .env file.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings have sensible defaults for development. Override via
    environment variables (prefixed with MCL_) or .env file.

    Examples:
        MCL_SQLITE_PATH=/var/lib/mcl/ledger.db
        MCL_ANCHOR_CURRENCY=EUR
        MCL_RATE_TTL_HOURS=12
        MCL_REFRESH_SECRET=$(openssl rand -hex 32)
    """

    model_config = SettingsConfigDict(
        env_prefix="MCL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Multi-Currency Ledger"
    app_version: str = "0.1.0"
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = Field(default=False, description="Enable debug mode")

    # Database
    sqlite_path: Path = Field(
        default=Path("multicurrency_ledger.db"),
        description="SQLite database file path",
    )

    # Logging
    log_level: LogLevel = LogLevel.INFO
    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format: 'json' for production, 'console' for development",
    )
    log_file: Path | None = Field(default=None, description="Optional log file path")

    # API Server
    # Binds to all interfaces for containerized deployments; set
    # MCL_API_HOST=127.0.0.1 behind a reverse proxy otherwise.
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Currency conversion
    anchor_currency: str = Field(
        default="USD",
        description="Triangulation anchor; the refresh job fetches ANCHOR -> X",
    )
    default_reporting_currency: str = Field(
        default="USD",
        description="Reporting currency used when an owner has not chosen one",
    )
    rate_ttl_hours: int = Field(
        default=24,
        ge=1,
        description="Rates recorded longer ago than this are flagged stale",
    )

    # External rate provider
    fx_provider_url: str = Field(
        default="https://api.frankfurter.app",
        description="Base URL of the Frankfurter-compatible rate provider",
    )
    fx_provider_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Timeout applied to each individual rate fetch",
    )

    # Scheduler trigger
    refresh_secret: str | None = Field(
        default=None,
        validate_default=True,
        description="Shared secret the scheduler must present to trigger a refresh",
    )

    @field_validator("anchor_currency", "default_reporting_currency", mode="before")
    @classmethod
    def normalize_currency_code(cls, v: str) -> str:
        """Upper-case currency codes and reject anything that is not 3 letters."""
        code = str(v).strip().upper()
        if len(code) != 3 or not code.isascii() or not code.isalpha():
            raise ValueError(f"Invalid currency code: {v}")
        return code

    @field_validator("refresh_secret", mode="after")
    @classmethod
    def require_refresh_secret_in_production(cls, v: str | None, info) -> str | None:
        """Refuse to start a deployed environment without a trigger secret.

        Without it the refresh endpoint can only ever answer 503, and the rate
        cache silently ages until every balance is stale.
        """
        environment = info.data.get("environment")
        if not v and environment in (Environment.PRODUCTION, Environment.STAGING):
            raise ValueError(
                f"MCL_REFRESH_SECRET must be set in {environment.value}. "
                "Generate one with `openssl rand -hex 32`."
            )
        return v

    @field_validator("debug", mode="before")
    @classmethod
    def set_debug_from_environment(cls, v: bool, info) -> bool:
        """Auto-enable debug in development environment."""
        if info.data.get("environment") == Environment.DEVELOPMENT:
            return True
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == Environment.TESTING


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload settings.

    Returns:
        Configured Settings instance.
    """
    return Settings()
