"""
Configuration management for the campus analytics engine.

Handles leaderboard sizes, time windows, retrospective thresholds and logging.
Values can be overridden through ``CADET_ANALYTICS_*`` environment variables
or a local ``.env`` file.
"""

import logging
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnalyticsSettings(BaseSettings):
    """Engine settings."""

    model_config = SettingsConfigDict(
        env_prefix="CADET_ANALYTICS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Leaderboards
    leaderboard_size: int = Field(default=5, ge=1)
    presence_window_periods: int = Field(default=3, ge=1)

    # Occupancy
    occupancy_window_days: int = Field(default=90, ge=1)

    # Retrospective
    retrospective_year: int = 2025
    max_labels: int = Field(default=4, ge=1, le=4)
    persistent_min_attempts: int = 5
    mentor_min_children: int = 2          # strictly greater than
    confident_min_success_rate: float = 80.0
    confident_min_projects: int = 5
    newcomer_max_projects: int = 5        # strictly less than
    community_min_reviews: int = 200      # strictly greater than

    # Headline buckets on projects + reviews (strictly greater than)
    headline_intense_threshold: int = 200
    headline_progress_threshold: int = 110
    headline_first_steps_threshold: int = 50

    # Word frequency
    top_words: int = Field(default=3, ge=1)
    min_word_length: int = Field(default=4, ge=1)

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    log_file: Optional[str] = None


# Global settings instance
_settings: Optional[AnalyticsSettings] = None


def get_settings() -> AnalyticsSettings:
    """Get engine settings (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = AnalyticsSettings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None


def configure_logging(settings: Optional[AnalyticsSettings] = None) -> None:
    """Apply the configured log level and format to the root logger."""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format=settings.log_format,
        filename=settings.log_file,
    )
    logging.getLogger("cadet_analytics").setLevel(level)
