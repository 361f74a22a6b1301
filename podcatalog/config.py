# podcatalog/config.py
import os
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from podcatalog import __version__


def default_database_path() -> Path:
    """Per-user database location used when no path is configured."""
    data_home = os.getenv("XDG_DATA_HOME")
    base = Path(data_home) if data_home else Path.home() / ".local" / "share"
    return base / "podcatalog" / "database"


class Settings(BaseSettings):
    database_path: Optional[Path] = None
    log_level: str = "INFO"
    sql_echo: bool = False

    # Feed fetching
    http_connect_timeout: float = 5.0
    http_read_timeout: float = 15.0
    user_agent: str = f"podcatalog/{__version__}"

    @property
    def resolved_database_path(self) -> Path:
        return self.database_path or default_database_path()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PODCATALOG_",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
