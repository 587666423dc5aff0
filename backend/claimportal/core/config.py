"""
Application Configuration
"""
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings
from pydantic import model_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "ClaimPortal"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False  # Secure default

    # Database
    DATABASE_URL: str = "sqlite:///./claimportal.db"
    DATABASE_ECHO: bool = False
    SEED_DEMO_DATA: bool = False  # development only

    # Redis (wizard sessions)
    REDIS_URL: str = "redis://localhost:6379/0"
    SESSION_TTL_HOURS: int = 24

    # File Storage
    UPLOAD_DIR: str = "./uploads"
    STAGING_DIR: str = "./uploads/.staging"
    MAX_UPLOAD_SIZE_MB: int = 5

    # Manufacturer warranty fallback when no model/category entry exists
    DEFAULT_WARRANTY_MONTHS: int = 12

    # AI image analysis (advisory only)
    AI_ANALYSIS_URL: str = ""
    AI_ANALYSIS_API_KEY: str = ""
    AI_ANALYSIS_MODEL: str = "google/gemini-2.5-flash"
    AI_ANALYSIS_TIMEOUT_SECONDS: float = 45.0

    # Outbound notifications
    NOTIFICATION_WEBHOOK_URL: str = ""

    # Claim numbering
    CLAIM_NUMBER_PREFIX: str = "CLM"

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate critical settings for non-development environments."""
        if self.APP_ENV != "development":
            if self.DATABASE_URL.startswith("sqlite"):
                raise ValueError(
                    "DATABASE_URL must point at a server database in staging/production. "
                    "SQLite is only supported for local development."
                )

            # Warn about DEBUG mode in production
            if self.DEBUG:
                import warnings
                warnings.warn(
                    "DEBUG mode is enabled in a non-development environment. "
                    "This is not recommended for production.",
                    UserWarning,
                )

        if self.AI_ANALYSIS_URL and not self.AI_ANALYSIS_API_KEY:
            raise ValueError(
                "AI_ANALYSIS_API_KEY is required when AI_ANALYSIS_URL is set. "
                "Set it in your .env file or environment variables."
            )

        return self

    @property
    def max_upload_size_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()


settings = get_settings()
