from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Override with env vars, e.g.
    #     PIGFARM_DATABASE_URL=postgresql+psycopg://farm:farm@db/pigfarm
    database_url: str = "sqlite:///./pigfarm.db"
    log_level: str = "INFO"

    # Breeding calendar
    gestation_days: int = Field(default=114, ge=1)
    due_soon_days: int = Field(default=7, ge=0)
    confirm_after_days: int = Field(default=21, ge=0)
    active_cycle_window_days: int = Field(default=120, ge=1)

    # Litter identifiers
    litter_id_prefix: str = "LT"
    litter_id_max_attempts: int = Field(default=10, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="PIGFARM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
