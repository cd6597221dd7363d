"""Application configuration with Pydantic Settings.

This module provides centralized configuration management using pydantic-settings.
Settings are loaded from environment variables and .env files.

Examples:
    >>> from app.config import get_settings
    >>> settings = get_settings()
    >>> settings.JWT_EXPIRE_DAYS
    7

    >>> settings.get_model_config()
    {'text': 'gemini-2.5-flash', 'image': 'gemini-2.5-flash-image', 'video': 'veo-2.0-generate-001'}

Tests:
    - tests/unit/test_config.py::TestSettings
"""

from enum import Enum
from functools import lru_cache
from typing import Any

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "dev-secret-change-me"


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables and .env file.
    The Google API key is optional at startup: paid operations fail (and
    refund) with a configuration error when it is missing.

    Attributes:
        DATABASE_URL: Database connection string (SQLite or PostgreSQL)
        GOOGLE_API_KEY: Google AI API key (also read from API_KEY)
        JWT_SECRET_KEY: HS256 signing secret for session tokens
        TEXT_MODEL: Model for prompt optimization
        IMAGE_MODEL: Model for image editing and ad composition
        VIDEO_MODEL: Model for video generation
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./studio.db",
        description="Database connection string",
    )

    # Provider
    GOOGLE_API_KEY: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_API_KEY", "API_KEY"),
        description="Google AI API key",
    )

    # Model Selection
    TEXT_MODEL: str = Field(
        default="gemini-2.5-flash",
        description="Model for prompt optimization",
    )
    IMAGE_MODEL: str = Field(
        default="gemini-2.5-flash-image",
        description="Model for image editing and ad composition",
    )
    VIDEO_MODEL: str = Field(
        default="veo-2.0-generate-001",
        description="Model for video generation",
    )
    VIDEO_DOWNLOAD_HOST: str = Field(
        default="generativelanguage.googleapis.com",
        description="Only host the video download proxy will fetch from",
    )

    # Sessions
    JWT_SECRET_KEY: str = Field(
        default=DEFAULT_JWT_SECRET,
        description="Secret used to sign session tokens",
    )
    JWT_EXPIRE_DAYS: int = Field(
        default=7,
        ge=1,
        description="Session token lifetime in days",
    )
    AUTH_COOKIE_NAME: str = Field(
        default="auth_token",
        description="Name of the HTTP-only session cookie",
    )
    PASSWORD_HASH_ROUNDS: int = Field(
        default=12,
        ge=4,
        le=31,
        description="bcrypt cost factor for new password hashes",
    )

    # Video job polling
    VIDEO_POLL_INTERVAL_SECONDS: float = Field(
        default=10.0,
        gt=0,
        description="Initial wait between upstream status checks",
    )
    VIDEO_POLL_BACKOFF_FACTOR: float = Field(
        default=1.5,
        ge=1.0,
        description="Multiplier applied to the wait after each pending check",
    )
    VIDEO_POLL_MAX_INTERVAL_SECONDS: float = Field(
        default=60.0,
        gt=0,
        description="Upper bound for the wait between status checks",
    )
    VIDEO_POLL_MAX_ATTEMPTS: int = Field(
        default=90,
        ge=1,
        description="Pending status checks allowed before a job is failed",
    )

    # Bootstrap users
    ADMIN_EMAIL: str | None = Field(
        default=None,
        description="Email of the administrator created on startup",
    )
    ADMIN_PASSWORD: str | None = Field(
        default=None,
        description="Password of the administrator created on startup",
    )
    SEED_DEMO_USERS: bool = Field(
        default=False,
        description="Create the pending/approved demo users on startup",
    )

    # Application Settings
    ENVIRONMENT: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    DEBUG: bool = Field(
        default=True,
        description="Enable debug mode",
    )
    CORS_ORIGINS: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="Comma-separated list of allowed browser origins",
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL format."""
        valid_prefixes = ("sqlite", "postgresql", "postgres")
        if not any(v.startswith(prefix) for prefix in valid_prefixes):
            raise ValueError(
                f"DATABASE_URL must start with one of: {valid_prefixes}"
            )
        return v

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Refuse to run production with the development signing secret."""
        if self.is_production and self.JWT_SECRET_KEY == DEFAULT_JWT_SECRET:
            raise ValueError("JWT_SECRET_KEY must be set in production")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == Environment.PRODUCTION

    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite database."""
        return self.DATABASE_URL.startswith("sqlite")

    @property
    def cookie_secure(self) -> bool:
        """Session cookies require HTTPS everywhere but local development."""
        return self.ENVIRONMENT != Environment.DEVELOPMENT

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    def get_api_key(self) -> str:
        """Get the Google API key.

        Raises:
            ValueError: If the key is not configured.
        """
        if not self.GOOGLE_API_KEY:
            raise ValueError("GOOGLE_API_KEY not configured")
        return self.GOOGLE_API_KEY

    def get_model_config(self) -> dict[str, Any]:
        """Get model configuration dictionary."""
        return {
            "text": self.TEXT_MODEL,
            "image": self.IMAGE_MODEL,
            "video": self.VIDEO_MODEL,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: The application settings.
    """
    return Settings()
