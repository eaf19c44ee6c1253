"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tripsync.models.common import BudgetPreset


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="TRIPSYNC_", extra="ignore"
    )

    # Snapshot storage (None = in-memory)
    database_url: str | None = None

    # Persistence debounce window (seconds)
    persist_debounce_seconds: float = 3.0

    # Widget history
    widget_history_limit: int = Field(default=50, ge=1)
    llm_context_interactions: int = Field(default=10, ge=0)

    # Event bus
    bus_raise_handler_errors: bool = False

    # Accommodation defaults (per night)
    default_budget_preset: BudgetPreset = BudgetPreset.comfort
    default_price_min: int = 80
    default_price_max: int = 180

    # Activity defaults (per activity)
    default_activity_budget_min: int = 0
    default_activity_budget_max: int = 150

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
