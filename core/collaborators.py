# core/collaborators.py
"""
Contracts of the services the inventory talks to after (or before) a write.

Each contract has an HTTP implementation, used when its URL is configured,
and a local one that only logs. Views receive them through ``core.deps``.
"""
import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import BaseModel

from core.errors import ActivationError, NotificationError

logger = logging.getLogger(__name__)

NOTIFICATION_FAILED = (
    "Error during configuration sending of asset change notification. Consult system log."
)

CREDENTIAL_KEY_PATTERN = "secw_credential_id"
CAM_SERVICE_ID = "monitoring"
CAM_DEFAULT_PROTOCOL = "default"
CAM_DEFAULT_PORT = "0"


# ---------- Notification ----------

class AssetNotifier:
    """Announces created, updated and deleted assets."""

    async def notify(self, asset: Mapping[str, Any], operation: str) -> None:
        raise NotImplementedError


class LoggingNotifier(AssetNotifier):
    async def notify(self, asset: Mapping[str, Any], operation: str) -> None:
        logger.info("asset %s: %s", operation, asset.get("name"))


class HttpNotifier(AssetNotifier):
    def __init__(self, url: str, timeout: float = 5.0):
        self.url = url
        self.timeout = timeout

    async def notify(self, asset: Mapping[str, Any], operation: str) -> None:
        """
        POST the change to the configured endpoint.

        Raises:
            NotificationError: If the endpoint is unreachable or answers with an error
        """
        body = {"operation": operation, "asset": dict(asset)}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(self.url, json=body)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("notification of %s %s failed: %s", operation, asset.get("name"), exc)
            raise NotificationError(NOTIFICATION_FAILED, key=asset.get("name")) from exc


# ---------- Activation ----------

class AssetActivator:
    """Licensing gate for power devices going active, and their deactivation."""

    async def is_activable(self, snapshot: str) -> bool:
        raise NotImplementedError

    async def deactivate(self, snapshot: str) -> None:
        raise NotImplementedError


class PermissiveActivator(AssetActivator):
    async def is_activable(self, snapshot: str) -> bool:
        return True

    async def deactivate(self, snapshot: str) -> None:
        logger.debug("deactivate %s", json.loads(snapshot).get("id"))


class HttpActivator(AssetActivator):
    def __init__(self, url: str, timeout: float = 5.0, transport: httpx.AsyncBaseTransport | None = None):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _post(self, path: str, snapshot: str) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(
                    f"{self.url}/{path}",
                    content=snapshot,
                    headers={"Content-Type": "application/json"},
                )
                resp.raise_for_status()
                return resp
        except httpx.HTTPError as exc:
            logger.error("activation service call '%s' failed: %s", path, exc)
            raise ActivationError(f"Activation service failed: {exc}") from exc

    async def is_activable(self, snapshot: str) -> bool:
        resp = await self._post("activable", snapshot)
        try:
            answer = resp.json()
        except ValueError as exc:
            raise ActivationError("Activation service returned a malformed answer") from exc
        if not isinstance(answer, dict):
            raise ActivationError("Activation service returned a malformed answer")
        return bool(answer.get("activable", False))

    async def deactivate(self, snapshot: str) -> None:
        await self._post("deactivate", snapshot)


# ---------- Credential mapping ----------

class CredentialMapping(BaseModel):
    credential_id: str
    service_id: str = CAM_SERVICE_ID
    protocol: str = CAM_DEFAULT_PROTOCOL
    port: str = CAM_DEFAULT_PORT


class CredentialMapper:
    """Keeps asset to credential mappings in sync with ext attributes."""

    @staticmethod
    def extract(ext: Mapping[str, str]) -> list[CredentialMapping]:
        return [
            CredentialMapping(credential_id=value)
            for key, value in ext.items()
            if CREDENTIAL_KEY_PATTERN in key and value
        ]

    async def remove_mappings(self, asset_name: str) -> None:
        raise NotImplementedError

    async def create_mappings(self, asset_name: str, mappings: list[CredentialMapping]) -> None:
        raise NotImplementedError


class LoggingCredentialMapper(CredentialMapper):
    async def remove_mappings(self, asset_name: str) -> None:
        logger.debug("remove credential mappings of %s", asset_name)

    async def create_mappings(self, asset_name: str, mappings: list[CredentialMapping]) -> None:
        for mapping in mappings:
            logger.debug("map %s to credential %s", asset_name, mapping.credential_id)


class HttpCredentialMapper(CredentialMapper):
    def __init__(self, url: str, timeout: float = 5.0):
        self.url = url.rstrip("/")
        self.timeout = timeout

    async def remove_mappings(self, asset_name: str) -> None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.delete(f"{self.url}/assets/{asset_name}/mappings")
            resp.raise_for_status()

    async def create_mappings(self, asset_name: str, mappings: list[CredentialMapping]) -> None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for mapping in mappings:
                resp = await client.post(
                    f"{self.url}/assets/{asset_name}/mappings",
                    json=mapping.model_dump(),
                )
                resp.raise_for_status()


async def sync_credential_mappings(
    mapper: CredentialMapper, asset_name: str, ext: Mapping[str, str]
) -> None:
    """Replace the mappings of an asset; failures are logged and swallowed."""
    try:
        await mapper.remove_mappings(asset_name)
        await mapper.create_mappings(asset_name, mapper.extract(ext))
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("credential mapping update for %s failed: %s", asset_name, exc)


# ---------- Factories ----------

def build_notifier(url: str | None, timeout: float) -> AssetNotifier:
    return HttpNotifier(url, timeout) if url else LoggingNotifier()


def build_activator(url: str | None, timeout: float) -> AssetActivator:
    return HttpActivator(url, timeout) if url else PermissiveActivator()


def build_credential_mapper(url: str | None, timeout: float) -> CredentialMapper:
    return HttpCredentialMapper(url, timeout) if url else LoggingCredentialMapper()
