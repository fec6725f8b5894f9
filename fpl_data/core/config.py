"""
Data layer configuration.

Values come from (highest precedence first) environment variables,
.env.{ENVIRONMENT} (e.g. .env.production), .env, then the defaults below.
"""
import os
from pathlib import Path
from typing import Literal, Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root, three levels up from fpl_data/core/config.py
PROJECT_ROOT = Path(__file__).parent.parent.parent


def _env_files() -> Tuple[str, ...]:
    """.env first, then the environment-specific file, which wins on conflicts."""
    environment = os.getenv("ENVIRONMENT", "development")
    return (
        str(PROJECT_ROOT / ".env"),
        str(PROJECT_ROOT / f".env.{environment}"),
    )


class Settings(BaseSettings):
    """Data layer settings."""

    model_config = SettingsConfigDict(
        env_file=_env_files(),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    ENVIRONMENT: Literal["development", "production", "test"] = "development"

    APP_NAME: str = "FPL Data Layer"
    APP_VERSION: str = "1.0.0"

    # Local cache (SQLite). "sqlite://" gives a throwaway in-memory store.
    DATABASE_URL: str = f"sqlite:///{PROJECT_ROOT / 'data' / 'fpl.db'}"
    SQL_ECHO: bool = False

    # Fantasy Premier League API
    FPL_API_BASE_URL: str = "https://fantasy.premierleague.com/api"
    FPL_API_TIMEOUT: float = 30.0
    FPL_API_MAX_ATTEMPTS: int = 3

    # Background refresh
    REFRESH_INTERVAL_MINUTES: int = 60

    # IANA zone for kickoff times, empty means the system local zone
    LOCAL_TIMEZONE: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


settings = Settings()
