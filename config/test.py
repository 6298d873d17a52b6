from __future__ import annotations

from pydantic_settings import SettingsConfigDict

from config.base import AssetSettings


class TestSettings(AssetSettings):
    DATABASE_URL: str | None = "sqlite+aiosqlite://"
    APP_ENV: str = "test"
    DEBUG: bool = False

    model_config = SettingsConfigDict(env_file=None)
