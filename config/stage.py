from __future__ import annotations

from config.base import AssetSettings, env_file_config
from config.database import get_database_url


class StageSettings(AssetSettings):
    """Staging assembles its URL from the DB_* variables set by the deployment."""

    APP_ENV: str = "stage"

    DB_DRIVER: str = "postgresql+asyncpg"
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str | None = None
    DB_PASSWORD: str | None = None
    DB_NAME: str = "asset_inventory"

    model_config = env_file_config("staging")

    @property
    def DATABASE_URL(self) -> str:
        return get_database_url(
            driver=self.DB_DRIVER,
            host=self.DB_HOST,
            port=self.DB_PORT,
            user=self.DB_USER,
            password=self.DB_PASSWORD,
            name=self.DB_NAME,
        )
