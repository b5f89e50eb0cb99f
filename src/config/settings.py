import logging
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    # FACEIT Configuration
    faceit_api_key: Optional[str] = Field(
        None, description="Server-side key for the FACEIT Data API."
    )
    faceit_client_key: Optional[str] = Field(
        None, description="Client-side key used for player match history."
    )
    faceit_base_url: str = "https://open.faceit.com/data/v4"
    faceit_stats_url: str = "https://www.faceit.com/api/stats/v1"
    faceit_team_id: str = Field(
        "8689f8ac-c01b-40f4-96c6-9e7627665b65",
        description="FACEIT team identifier used to pick our faction.",
    )
    faceit_team_name: str = "FORZE Reload"
    faceit_game: str = "cs2"

    # HLTV Configuration
    hltv_base_url: str = "https://www.hltv.org"
    hltv_team_id: int = 12857
    hltv_team_slug: str = "forze-reload"
    headless: bool = True

    # Cache Settings
    api_cache_ttl_seconds: float = Field(
        120.0, gt=0, description="Freshness window for FACEIT API data."
    )
    html_cache_ttl_seconds: float = Field(
        600.0, gt=0, description="Freshness window for scraped HLTV pages."
    )

    # Pagination Settings
    page_size: int = Field(100, ge=1, le=100)
    max_pages: int = Field(40, ge=1)
    max_consecutive_empty_pages: int = Field(1, ge=1)
    page_delay_seconds: float = Field(
        0.2, ge=0, description="Pause between successive page requests."
    )
    page_jitter_seconds: float = Field(0.0, ge=0)
    detail_delay_seconds: float = Field(
        0.1, ge=0, description="Pause between per-match detail requests."
    )
    history_window_days: int = Field(
        90, ge=1, description="Only matches newer than this are collected."
    )

    # HTTP Settings
    request_timeout_seconds: float = Field(30.0, gt=0)
    retry_max_attempts: int = Field(4, ge=1)
    retry_min_wait_seconds: float = Field(1.0, ge=0)
    retry_max_wait_seconds: float = Field(10.0, ge=0)

    # Presentation
    display_date_format: str = "%d.%m.%Y"

    # Server Configuration
    host: str = "127.0.0.1"
    port: int = 3001
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Logging Configuration
    log_level: str = Field(
        "INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."
    )

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )


def load_settings() -> AppSettings:
    """Loads and validates application settings."""
    try:
        settings = AppSettings()
        log_level_upper = settings.log_level.upper()
        # Validate log_level even if loaded from .env
        if log_level_upper not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            logging.warning(
                f"Invalid LOG_LEVEL '{settings.log_level}' found in .env or default. Using INFO."
            )
            settings.log_level = "INFO"
        else:
            settings.log_level = log_level_upper
        return settings
    except Exception as e:
        logging.exception(f"Error loading application settings: {e}")
        raise SystemExit("Failed to load application settings. Exiting.")


settings: AppSettings = load_settings()
