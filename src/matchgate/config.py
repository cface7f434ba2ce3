"""Configuration management for the MatchGate service."""

from typing import Any

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    DATABASE_URL: str

    # Redis Configuration (pair locks, optional)
    REDIS_URL: str | None = None

    # Sentry Configuration
    SENTRY_DSN: str | None = None

    # Supabase Auth Configuration
    SUPABASE_URL: str | None = None
    SUPABASE_KEY: str | None = None

    # Application Configuration
    APP_NAME: str = "MatchGate"
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"
    DEBUG: bool = Field(default=None, validate_default=True)

    # API Configuration
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Matching Gate Configuration
    DAILY_LIKE_LIMIT: int = 10
    QUOTA_UTC_OFFSET_HOURS: int = 9
    STORE_TIMEOUT_SECONDS: float = 5.0
    PAIR_LOCK_TIMEOUT_SECONDS: float = 5.0
    DEFAULT_DISPLAY_NAME: str = "User"

    @field_validator("DEBUG", mode="before")
    @classmethod
    def set_debug(cls, v: Any, info: ValidationInfo) -> bool:
        """Use an explicit DEBUG value, otherwise enable debug when ENVIRONMENT is development."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str) and v.strip():
            return v.strip().lower() in ("1", "true", "yes", "on")
        return bool(info.data.get("ENVIRONMENT", "").lower() == "development")

    @field_validator("DAILY_LIKE_LIMIT")
    @classmethod
    def check_limit(cls, v: int) -> int:
        """Reject a negative daily limit."""
        if v < 0:
            raise ValueError("DAILY_LIKE_LIMIT must not be negative")
        return v

    @field_validator("QUOTA_UTC_OFFSET_HOURS")
    @classmethod
    def check_offset(cls, v: int) -> int:
        """Keep the reference offset inside the range real timezones use."""
        if not -12 <= v <= 14:
            raise ValueError("QUOTA_UTC_OFFSET_HOURS must be between -12 and 14")
        return v

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore")


# Create a global settings instance
settings = Settings()  # type: ignore


def get_settings() -> Settings:
    """Return the settings instance."""
    return settings
