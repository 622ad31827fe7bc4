"""Runtime settings loaded from environment variables (prefix ``SPELLINGBEE_``)."""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Tunable limits for a competition run."""

    model_config = SettingsConfigDict(
        env_prefix="SPELLINGBEE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Turn timer
    default_turn_seconds: int = Field(60, ge=1, le=5999)
    tick_interval: float = Field(1.0, gt=0)
    # Countdown is shown as a warning at or below this many seconds
    low_time_threshold: int = Field(10, ge=0)

    # Registration
    min_competitors: int = Field(2, ge=2)
    max_competitors: int = Field(500, ge=2)
    max_name_length: int = Field(255, ge=1)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
