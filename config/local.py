from __future__ import annotations

from config.base import AssetSettings, env_file_config


class LocalSettings(AssetSettings):
    """Developer machine: a SQLite file next to the project, verbose logs."""

    DATABASE_URL: str | None = "sqlite+aiosqlite:///./assets.db"
    APP_ENV: str = "local"
    DEBUG: bool = True
    LOG_LEVEL: str = "DEBUG"

    model_config = env_file_config("local")
