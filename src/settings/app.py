"""Application settings powered by Pydantic BaseSettings."""

from pathlib import Path
from typing import Annotated

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.content.models import FeedSort


class FeedSettings(BaseSettings):
    """Centralized environment configuration for feed sessions."""

    model_config = SettingsConfigDict(
        env_prefix="FEED_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    page_size: Annotated[int, Field(ge=1, le=100)] = 10
    max_load_retries: Annotated[int, Field(ge=0, le=10)] = 3
    freshness_interval_seconds: Annotated[float, Field(gt=0)] = 60.0
    collision_horizon: Annotated[int, Field(ge=1)] = 50
    sort: FeedSort = FeedSort.NEWEST_FIRST
    slot_table_path: Path | None = None
    backend_base_url: str | None = None
    backend_timeout_seconds: Annotated[float, Field(gt=0)] = 10.0
    mention_min_relevance: Annotated[float, Field(ge=0)] = 30.0
    mention_limit: Annotated[int, Field(ge=0)] = 20


def get_settings() -> FeedSettings:
    """Get a settings instance."""
    return FeedSettings()
