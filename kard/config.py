"""
Centralized configuration management for the Kard application.
"""
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_default_data_dir() -> Path:
    """Returns the default directory for Kard's database and device storage."""
    return Path.home() / ".kard"


class Settings(BaseSettings):
    """
    Defines application settings, loaded from environment variables or .env files.
    """

    model_config = SettingsConfigDict(
        env_prefix="KARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Core Paths ---
    # Overridden by KARD_DB_PATH / KARD_STORAGE_DIR.
    db_path: Path = get_default_data_dir() / "kard.db"
    storage_dir: Path = get_default_data_dir()

    # --- Auth ---
    session_ttl_hours: int = 24 * 7
    secret_key: str = "kard-dev-secret"

    # --- Web server ---
    host: str = "127.0.0.1"
    port: int = 8000

    # --- Testing Configuration ---
    # Disables the data-loss guard on forced table recreation.
    testing_mode: bool = False


settings = Settings()
