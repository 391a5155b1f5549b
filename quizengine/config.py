"""
Application configuration using pydantic-settings.
Loads from environment variables with .env file support.
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
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./quiz_engine.db"

    # Oracle (question authoring / grading / summary)
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_timeout_seconds: float = 30.0

    # Assessment engine
    question_retry_attempts: int = 3
    dedup_fail_on_exhaustion: bool = False
    exclusion_max_length: int = 2000
    history_limit: int = 1000
    default_topic: str = "random"
    default_difficulty: str = "novice-1"
    oracle_avoid_context_limit: int = 200  # most recent avoid entries sent to the oracle
    leaderboard_default_limit: int = 10
    stub_min_answer_words: int = 3

    # Application
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR

    # API Settings
    api_v1_prefix: str = "/api/v1"
    project_name: str = "Adaptive Quiz Engine"
    version: str = "1.0.0"

    # Administrative bulk wipe; disabled when unset
    admin_token: Optional[str] = None

    # Rate limiting
    rate_limit_api_per_minute: int = 120   # per IP for general API
    rate_limit_oracle_per_minute: int = 30  # per IP for endpoints that call the oracle
    rate_limit_enabled: bool = True
    rate_limit_trust_forwarded_for: bool = False  # only behind a proxy that sets X-Forwarded-For

    @property
    def oracle_configured(self) -> bool:
        key = (self.openai_api_key or "").strip()
        return bool(key and not key.startswith("sk-your-"))


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
