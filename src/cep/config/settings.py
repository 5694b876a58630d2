"""Application settings loaded from environment."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strongly typed settings for the pipeline."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    pghost: Optional[str] = Field(default=None, alias="PGHOST")
    pgport: int = Field(default=5432, alias="PGPORT")
    pguser: Optional[str] = Field(default=None, alias="PGUSER")
    pgpassword: Optional[str] = Field(default=None, alias="PGPASSWORD")
    pgdatabase: Optional[str] = Field(default=None, alias="PGDATABASE")
    db_connect_retries: int = Field(default=30, alias="DB_CONNECT_RETRIES")
    db_connect_delay_seconds: float = Field(default=2.0, alias="DB_CONNECT_DELAY_SECONDS")

    # Watcher
    watch_folder: Path = Field(default=Path("watch"), alias="WATCH_FOLDER")
    watcher_interval: int = Field(default=5, alias="WATCHER_INTERVAL")
    watcher_file_pattern: str = Field(default="*.xml", alias="WATCHER_FILE_PATTERN")
    watcher_stability_seconds: float = Field(default=1.0, alias="WATCHER_STABILITY_SECONDS")
    watcher_seen_capacity: int = Field(default=1000, alias="WATCHER_SEEN_CAPACITY")
    # Only dispatch the newest file per call number; quarantine unparseable names.
    watcher_latest_only: bool = Field(default=False, alias="WATCHER_LATEST_ONLY")

    # Runtime
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: Optional[Path] = Field(default=None, alias="LOG_FILE")
    log_retention_days: int = Field(default=7, alias="LOG_RETENTION_DAYS")
    run_env: str = Field(default="local", alias="RUN_ENV")

    def get_database_url(self) -> str:
        """Return a usable database URL or raise."""
        if self.database_url:
            return self.database_url

        if all([self.pghost, self.pguser, self.pgpassword, self.pgdatabase]):
            return (
                "postgresql://"
                f"{self.pguser}:{self.pgpassword}@{self.pghost}:{self.pgport}/"
                f"{self.pgdatabase}"
            )

        raise ValueError("DATABASE_URL or PG* env vars must be set")
