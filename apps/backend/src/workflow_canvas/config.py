from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ------------------------------------------------------------------
    # Remote workflow API (system of record + tool catalog)
    # ------------------------------------------------------------------
    workflow_api_url: str = "https://mini-hub.fly.dev"
    workflow_api_token: Optional[str] = None  # Bearer token
    request_timeout: float = 30.0

    # Ask the catalog for every tool, not only those with a live connection
    include_all_tools: bool = True

    # ------------------------------------------------------------------
    # Defaults for newly added steps
    # ------------------------------------------------------------------
    default_max_retries: int = 3
    default_retry_delay: int = 30   # seconds
    default_step_timeout: int = 60  # seconds

    # ------------------------------------------------------------------
    # Abandoned editor sessions
    # ------------------------------------------------------------------
    drafts_dir: Optional[Path] = None  # defaults to apps/backend/drafts

    # Sessions untouched for this long are dropped when the next one opens
    session_idle_timeout: float = 3600.0  # seconds

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
