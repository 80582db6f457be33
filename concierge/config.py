from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Concierge configuration sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    env: str = Field(default="dev", alias="CONCIERGE_ENV")
    debug: bool = Field(default=False, alias="CONCIERGE_DEBUG")

    support_api_base_url: str = Field(default="http://localhost:3000", alias="CONCIERGE_SUPPORT_API_BASE_URL")
    http_timeout_seconds: float = Field(default=10.0, alias="CONCIERGE_HTTP_TIMEOUT_SECONDS")
    site_origin: str = Field(default="https://www.glowglitch.com", alias="CONCIERGE_SITE_ORIGIN")

    session_storage_key: str = Field(default="concierge-widget-state", alias="CONCIERGE_SESSION_STORAGE_KEY")
    intro_storage_key: str = Field(default="concierge-intro-dismissed", alias="CONCIERGE_INTRO_STORAGE_KEY")
    storage_dir: Optional[str] = Field(default=None, alias="CONCIERGE_STORAGE_DIR")

    # Classification policy
    execute_threshold: float = Field(default=0.7, alias="CONCIERGE_EXECUTE_THRESHOLD")
    human_threshold: float = Field(default=0.5, alias="CONCIERGE_HUMAN_THRESHOLD")
    human_escalation_misses: int = Field(default=2, alias="CONCIERGE_HUMAN_ESCALATION_MISSES")
    rules_path: Optional[str] = Field(default=None, alias="CONCIERGE_RULES_PATH")

    share_title: str = Field(default="My GlowGlitch shortlist", alias="CONCIERGE_SHARE_TITLE")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
