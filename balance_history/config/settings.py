"""
Configuration Management for Balance History

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Nothing in the reconstruction or merge steps is configurable; only the
collaborator fetch boundary and logging are.
"""

from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FetchSettings(BaseSettings):
    """Retry policy for ledger and account store fetches."""

    model_config = SettingsConfigDict(
        env_prefix="BALANCE_HISTORY_FETCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Total attempts per collaborator call (1 = no retry)"
    )
    retry_min_wait_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Lower bound of the exponential backoff"
    )
    retry_max_wait_seconds: float = Field(
        default=5.0,
        ge=0.0,
        description="Upper bound of the exponential backoff"
    )

    @model_validator(mode='after')
    def validate_wait_bounds(self) -> 'FetchSettings':
        if self.retry_max_wait_seconds < self.retry_min_wait_seconds:
            raise ValueError("retry_max_wait_seconds cannot be below retry_min_wait_seconds")
        return self


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="BALANCE_HISTORY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for local structured logs"
    )
    default_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="Reporting currency assumed for accounts without one"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def fetch(self) -> FetchSettings:
        return FetchSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()
