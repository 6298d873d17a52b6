# core/deps.py
"""
FastAPI dependencies for settings, storage and external collaborators.
"""
from typing import Annotated

from fastapi import Depends

from config import AssetSettings, settings
from core.collaborators import (
    AssetActivator,
    AssetNotifier,
    CredentialMapper,
    build_activator,
    build_credential_mapper,
    build_notifier,
)
from db import RowStore, get_store


def get_settings() -> AssetSettings:
    return settings


def get_notifier(cfg: Annotated[AssetSettings, Depends(get_settings)]) -> AssetNotifier:
    return build_notifier(cfg.NOTIFY_URL, cfg.COLLABORATOR_TIMEOUT)


def get_activator(cfg: Annotated[AssetSettings, Depends(get_settings)]) -> AssetActivator:
    return build_activator(cfg.ACTIVATOR_URL, cfg.COLLABORATOR_TIMEOUT)


def get_credential_mapper(cfg: Annotated[AssetSettings, Depends(get_settings)]) -> CredentialMapper:
    return build_credential_mapper(cfg.CREDENTIAL_MAPPING_URL, cfg.COLLABORATOR_TIMEOUT)


# Type aliases for cleaner endpoint signatures
Store = Annotated[RowStore, Depends(get_store)]
AppSettings = Annotated[AssetSettings, Depends(get_settings)]
Notifier = Annotated[AssetNotifier, Depends(get_notifier)]
Activator = Annotated[AssetActivator, Depends(get_activator)]
CredentialMappings = Annotated[CredentialMapper, Depends(get_credential_mapper)]
