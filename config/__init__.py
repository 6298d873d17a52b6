"""
Settings for the running environment.

``MODE`` (or ``APP_ENV``) picks the settings class; without either the
local developer settings are used.
"""
from __future__ import annotations

import os

from .base import AssetSettings
from .local import LocalSettings
from .prod import ProdSettings
from .stage import StageSettings
from .test import TestSettings

_SETTINGS_BY_MODE: dict[str, type[AssetSettings]] = {
    "local": LocalSettings,
    "stage": StageSettings,
    "staging": StageSettings,
    "prod": ProdSettings,
    "production": ProdSettings,
    "test": TestSettings,
}


def settings_class_for(mode: str) -> type[AssetSettings]:
    try:
        return _SETTINGS_BY_MODE[mode]
    except KeyError:
        raise ValueError(f"Unknown MODE {mode!r}, expected one of {', '.join(_SETTINGS_BY_MODE)}") from None


MODE = (os.environ.get("MODE") or os.environ.get("APP_ENV") or "local").lower()
SettingsClass = settings_class_for(MODE)
settings = SettingsClass()

__all__ = ["settings", "settings_class_for", "SettingsClass", "MODE", "AssetSettings"]
