"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application environment
    env: Literal["dev", "test", "staging", "prod"] = "dev"

    # Database
    database_url: str = "sqlite+aiosqlite:///./assessments.db"

    # Security (tokens are issued by the host platform, we only verify them)
    secret_key: str = "CHANGE_ME_IN_PRODUCTION"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Roles allowed to open and save any assessment instance
    manage_roles: list[str] = ["admin", "coach"]

    # Logging
    log_level: str = "INFO"

    # Database initialization
    init_db_on_startup: bool = False

    # Branding shown at the top of assessment forms
    brand_name: str = "Housman Learning"
    brand_logo_url: str | None = None

    # Classroom roster page linked from "Missing a child?" (format with classroom_id, instance_id)
    classroom_page_url: str | None = None

    # Age band used when a classroom band has no instrument of its own
    fallback_age_bands: dict[str, str] = {"mixed": "preschool"}

    @property
    def is_dev(self) -> bool:
        """Check if running in development mode."""
        return self.env == "dev"

    @property
    def is_prod(self) -> bool:
        """Check if running in production mode."""
        return self.env == "prod"

    @property
    def is_test(self) -> bool:
        """Check if running in test mode."""
        return self.env == "test"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
