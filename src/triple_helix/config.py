"""Runtime settings, read from TRIPLE_HELIX_* environment variables or a .env file."""
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_prefix="TRIPLE_HELIX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    db_path: str = Field(
        default=str(Path.home() / ".triple_helix" / "scheduler.db"),
        description="SQLite file holding saved scheduler state",
    )
    user_id: str = Field(default="anonymous", description="Learner whose state the CLI loads")
    infinite_play_mode: bool = Field(
        default=True,
        description="Replay single-stitch tubes instead of reordering them",
    )
    log_level: str = Field(default="WARNING", description="loguru level for the CLI")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
