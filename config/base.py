from __future__ import annotations

import json
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_DIR = Path(__file__).resolve().parents[1] / "env"


def env_file_config(env_name: str) -> SettingsConfigDict:
    """Read ``env/.env.<env_name>`` when it is present."""
    env_file = ENV_DIR / f".env.{env_name}"
    return SettingsConfigDict(
        env_file=str(env_file) if env_file.exists() else None,
        env_file_encoding="utf-8",
        extra="ignore",
    )


class AssetSettings(BaseSettings):
    """Settings shared by every environment."""

    APP_ENV: str = "local"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Comma separated or JSON list; empty means the built-in defaults
    CORS_ORIGINS: str = ""

    # Allows removing the only datacenter of the inventory
    OVERRIDE_LAST_DC_DELETION_CHECK: bool = False

    # Upper bound for an uploaded import file, in bytes
    MAX_IMPORT_SIZE: int = 128 * 1024

    # External collaborators; unset means the local fallback implementation
    NOTIFY_URL: str | None = None
    ACTIVATOR_URL: str | None = None
    CREDENTIAL_MAPPING_URL: str | None = None
    COLLABORATOR_TIMEOUT: float = 5.0

    @property
    def cors_origins(self) -> list[str]:
        """Origins allowed by CORS; defaults cover the local frontends."""
        raw = self.CORS_ORIGINS.strip()
        if raw.startswith("["):
            return [str(origin) for origin in json.loads(raw)]
        if raw:
            return [origin.strip() for origin in raw.split(",") if origin.strip()]
        return [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
        ]
