"""
Raasta Sathi - Configuration Management
Centralized configuration using pydantic-settings.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: str = "development"
    log_level: str = "INFO"

    # Database
    database_url: Optional[str] = None
    db_echo: bool = False

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 5001

    # Client Settings
    api_base_url: str = "http://localhost:5001/api/v1"
    request_timeout_seconds: float = 60.0
    submit_max_attempts: int = 2
    submit_backoff_seconds: float = 1.0

    # Reports
    report_page_size: int = 100
    max_photo_bytes: int = 10 * 1024 * 1024

    # Photo storage
    photo_storage_dir: str = "uploads/photos"
    photo_base_url: str = "/uploads/photos"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
