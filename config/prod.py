from __future__ import annotations

from pydantic import model_validator

from config.base import AssetSettings, env_file_config


class ProdSettings(AssetSettings):
    DATABASE_URL: str | None = None
    APP_ENV: str = "production"
    LOG_LEVEL: str = "WARNING"

    model_config = env_file_config("production")

    @model_validator(mode="after")
    def require_database(self) -> "ProdSettings":
        if not self.DATABASE_URL:
            raise ValueError("DATABASE_URL must be set in production")
        if self.DATABASE_URL.startswith("sqlite"):
            raise ValueError("production inventory must not run on SQLite")
        return self
