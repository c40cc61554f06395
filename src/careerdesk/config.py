"""Application configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):  # type: ignore[misc]
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CAREERDESK_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Storage
    data_dir: Path = Path("data")  # One <collection>.json file per collection
    json_indent: int = 2

    # Listings
    default_page_size: int = 20

    # Advertisements
    cleanup_interval: float = 3600.0  # Seconds between expiry sweeps
    max_ads_per_position: int = 3
    max_ads_total: int = 6

    log_level: str = "INFO"


def get_settings() -> Settings:
    """Get application settings instance."""
    return Settings()
