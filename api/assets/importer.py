# api/assets/importer.py
"""
Import Reconciler: validated, per-row transactional writes from a CsvMap.
"""
import json
import logging
import re
from datetime import datetime, timezone

from core.asset_types import (
    ALLOWED_PARENTS,
    DEFAULT_PRIORITY,
    MAX_PRIORITY,
    MONITORED_SUBTYPES,
    POWER_SUBTYPES,
    RC0_NAME,
    STATUSES,
    AssetType,
    DeviceSubtype,
    is_container,
    subtype_to_subtypeid,
    subtypeid_to_subtype,
    type_to_typeid,
    typeid_to_type,
)
from core.collaborators import AssetActivator
from core.errors import ActivationError, AssetError, BadRequestError, ConflictError, NotFoundError
from db import RowStore
from . import db_manager
from .models import AssetElement, AssetLink
from .rows import CsvMap
from .sanitize import check_element_identifier, sanitize_ext_value

logger = logging.getLogger(__name__)

MANDATORY_TITLES = ("name", "type")
CORE_TITLES = frozenset({"id", "name", "type", "sub_type", "location", "status", "priority", "asset_tag"})
POWER_SOURCE = "power_source."
POWER_PLUG_SRC = "power_plug_src."
POWER_INPUT = "power_input."
GROUP = "group."
LOGICAL_ASSET_KEY = "logical_asset"

# Read-only attributes maintained by the importer itself
META_KEYTAGS = frozenset({"create_mode", "create_user", "create_ts", "update_user", "update_ts"})

_DIGITS = re.compile(r"[0-9]+")

ACTIVATION_REFUSED = (
    "Licensing limitation hit - maximum amount of active power devices allowed in license reached."
)


def get_priority(value: str) -> int:
    """Parse ``P1``..``P5`` (or a bare digit); empty means the default."""
    text = value.strip().upper()
    if not text:
        return DEFAULT_PRIORITY
    if text.startswith("P"):
        text = text[1:]
    if not _DIGITS.fullmatch(text) or not 1 <= int(text) <= MAX_PRIORITY:
        raise BadRequestError(
            f"priority: value '{value}' is not valid, expected P1..P{MAX_PRIORITY}", key="priority"
        )
    return int(text)


def _indexed_titles(titles: list[str], prefix: str) -> list[str]:
    """Suffixes of ``<prefix><n>`` titles in numeric order."""
    suffixes = [title[len(prefix):] for title in titles if title.startswith(prefix)]
    return sorted(suffixes, key=_title_order)


def _title_order(suffix: str) -> tuple[bool, int, str]:
    numbered = _DIGITS.fullmatch(suffix) is not None
    return (not numbered, int(suffix) if numbered else 0, suffix)


def _is_user_title(title: str) -> bool:
    return not (
        title in CORE_TITLES
        or title in META_KEYTAGS
        or title.startswith((POWER_SOURCE, POWER_PLUG_SRC, POWER_INPUT, GROUP))
    )


class AssetImporter:
    """
    Reconciles the rows of a ``CsvMap`` against the inventory.

    Rows carrying an ``id`` update that element; the others are inserted.
    Each row is written in its own transaction, so one bad row never
    blocks the others.
    """

    def __init__(self, store: RowStore, csv_map: CsvMap, activator: AssetActivator | None = None):
        self.store = store
        self.cm = csv_map
        self.activator = activator
        self.items: dict[int, AssetElement | AssetError] = {}
        self._seen: set[int] = set()

    def mandatory_missing(self, row: int) -> list[str]:
        return [title for title in MANDATORY_TITLES if not self.cm.get(row, title)]

    async def process(self, update: bool = False) -> dict[int, AssetElement | AssetError]:
        """
        Import every row; ``update`` requires each row to name an existing element.

        Returns a mapping of 1-based row number to the written element or the
        error that rolled the row back.
        """
        for row in self.cm.rows():
            try:
                async with self.store.transaction():
                    element = await self.process_row(row, update)
            except AssetError as exc:
                logger.warning("import of row %s failed: %s", row, exc.message)
                self.items[row] = exc
            else:
                logger.info("import of row %s stored %s", row, element.name)
                self.items[row] = element
        return self.items

    async def _resolve(self, reference: str, column: str) -> AssetElement:
        """Element by external name, falling back to the internal name."""
        try:
            element_id = await db_manager.ext_name_to_asset_id(self.store, reference)
            return await db_manager.select_asset_element_by_id(self.store, element_id)
        except NotFoundError:
            pass
        try:
            return await db_manager.select_asset_element_by_name(self.store, reference)
        except (NotFoundError, BadRequestError) as exc:
            raise NotFoundError(f"{column}: element '{reference}' not found.", key=reference) from exc

    async def _owner_of_ext_name(self, ext_name: str) -> int | None:
        try:
            return await db_manager.ext_name_to_asset_id(self.store, ext_name)
        except NotFoundError:
            return None

    async def process_row(self, row: int, update: bool = False) -> AssetElement:
        """
        Validate one row and write it.

        Raises:
            BadRequestError: On missing or malformed values
            NotFoundError: If a referenced element does not exist
            ConflictError: If the external name belongs to another element
            ActivationError: If a power device may not become active
        """
        cm = self.cm

        missing = self.mandatory_missing(row)
        if missing:
            raise BadRequestError(f"Missing mandatory fields: {', '.join(missing)}")

        ext_name = cm.get(row, "name")
        type_name = cm.get(row, "type")
        type_id = type_to_typeid(type_name)
        if type_id == 0:
            raise BadRequestError(f"type: '{type_name}' is not allowed", key="type")

        subtype_name = cm.get(row, "sub_type")
        subtype_id = int(DeviceSubtype.N_A)
        if type_id == AssetType.DEVICE:
            subtype_id = subtype_to_subtypeid(subtype_name)
            if subtype_id in (0, DeviceSubtype.N_A):
                raise BadRequestError(f"sub_type: '{subtype_name}' is not allowed for a device", key="sub_type")

        # Identity
        existing: AssetElement | None = None
        internal_name = cm.get(row, "id")
        owner = await self._owner_of_ext_name(ext_name)
        if internal_name:
            internal_name = check_element_identifier("id", internal_name)
            element_id = await db_manager.name_to_asset_id(self.store, internal_name)
            if element_id in self._seen:
                raise BadRequestError(f"id: element '{internal_name}' is listed more than once", key=internal_name)
            existing = await db_manager.select_asset_element_by_id(self.store, element_id)
            if existing.type_id != type_id:
                raise BadRequestError("type: changing the type of an existing asset is not allowed", key="type")
            if owner is not None and owner != element_id:
                raise ConflictError(f"Element with name '{ext_name}' already exists", key=ext_name)
        else:
            if update:
                raise BadRequestError("id: an existing asset must be specified for an update", key="id")
            if owner is not None:
                raise ConflictError(f"Element with name '{ext_name}' already exists", key=ext_name)

        # Status and priority
        status = cm.get(row, "status").lower() or "active"
        if status not in STATUSES:
            raise BadRequestError(f"status: '{status}' is not allowed, expected active or nonactive", key="status")
        if status == "nonactive" and (internal_name == RC0_NAME or is_container(type_id)):
            raise BadRequestError("Inactivation of this asset is not allowed", key="status")
        priority = get_priority(cm.get(row, "priority"))

        # Location
        parent_id = None
        location = cm.get(row, "location")
        if location:
            if type_id == AssetType.DATACENTER:
                raise BadRequestError("location: a datacenter can't be located", key="location")
            parent = await self._resolve(location, "location")
            if parent.type_id not in ALLOWED_PARENTS[AssetType(type_id)]:
                raise BadRequestError(
                    f"location: a {typeid_to_type(type_id)} can't be located in a {typeid_to_type(parent.type_id)}",
                    key="location",
                )
            if existing is not None:
                ancestors = await db_manager.select_asset_element_super_parent(self.store, parent.id)
                if parent.id == existing.id or existing.id in {p.id for p in ancestors}:
                    raise BadRequestError("location: asset can't be located inside itself", key="location")
            parent_id = parent.id

        # Extended attributes
        user_ext: dict[str, str] = {}
        for title in cm.titles:
            value = cm.get(row, title)
            if not value or not _is_user_title(title):
                continue
            if title == LOGICAL_ASSET_KEY:
                value = (await self._resolve(value, title)).name
            user_ext[title] = sanitize_ext_value(title, value)
        if type_id == AssetType.GROUP and subtype_name:
            user_ext["type"] = subtype_name

        # Groups
        group_ids = []
        for suffix in _indexed_titles(cm.titles, GROUP):
            reference = cm.get(row, GROUP + suffix)
            if not reference:
                continue
            group = await self._resolve(reference, GROUP + suffix)
            if group.type_id != AssetType.GROUP:
                raise BadRequestError(f"{GROUP}{suffix}: '{reference}' is not a group", key=reference)
            group_ids.append(group.id)

        # Power links
        links: list[AssetLink] = []
        for suffix in _indexed_titles(cm.titles, POWER_SOURCE):
            reference = cm.get(row, POWER_SOURCE + suffix)
            if not reference:
                continue
            if type_id != AssetType.DEVICE:
                raise BadRequestError("power links are allowed for devices only", key=POWER_SOURCE + suffix)
            source = await self._resolve(reference, POWER_SOURCE + suffix)
            if source.type_id != AssetType.DEVICE:
                raise BadRequestError(f"{POWER_SOURCE}{suffix}: '{reference}' is not a device", key=reference)
            if existing is not None and source.id == existing.id:
                raise BadRequestError(f"{POWER_SOURCE}{suffix}: device can't power itself", key=reference)
            links.append(
                AssetLink(
                    src=source.id,
                    dest=0,
                    src_out=cm.get(row, POWER_PLUG_SRC + suffix) or None,
                    dest_in=cm.get(row, POWER_INPUT + suffix) or None,
                )
            )

        element = AssetElement(
            id=existing.id if existing else 0,
            name=internal_name or self._name_prefix(type_id, subtype_id),
            status=status,
            priority=priority,
            type_id=type_id,
            subtype_id=subtype_id,
            parent_id=parent_id,
            asset_tag=cm.get(row, "asset_tag") or None,
        )

        await self._check_activation(element, ext_name, existing)

        if existing is None:
            element_id = await self._insert(element, ext_name, user_ext, group_ids, links)
        else:
            element_id = await self._update(element, ext_name, user_ext, group_ids, links)
        self._seen.add(element_id)
        return await db_manager.select_asset_element_by_id(self.store, element_id)

    @staticmethod
    def _name_prefix(type_id: int, subtype_id: int) -> str:
        if type_id == AssetType.DEVICE:
            return subtypeid_to_subtype(subtype_id)
        return typeid_to_type(type_id)

    async def _check_activation(self, element: AssetElement, ext_name: str, existing: AssetElement | None) -> None:
        if self.activator is None or element.status != "active":
            return
        if element.type_id != AssetType.DEVICE or element.subtype_id not in POWER_SUBTYPES:
            return
        if existing is not None and existing.status == "active":
            return
        snapshot = json.dumps(
            {
                "id": element.name,
                "name": ext_name,
                "type": typeid_to_type(element.type_id),
                "sub_type": subtypeid_to_subtype(element.subtype_id),
                "status": element.status,
                "priority": f"P{element.priority}",
            }
        )
        if not await self.activator.is_activable(snapshot):
            raise ActivationError(ACTIVATION_REFUSED, key=ext_name)

    def _read_only_attributes(self, ext_name: str, creating: bool) -> dict[str, str]:
        now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        ro = {"name": ext_name}
        if creating:
            ro["create_ts"] = now
            ro["create_mode"] = self.cm.create_mode or "import"
            if self.cm.create_user:
                ro["create_user"] = self.cm.create_user
        else:
            ro["update_ts"] = now
            if self.cm.update_user:
                ro["update_user"] = self.cm.update_user
        return ro

    async def _write_relations(self, element_id: int, group_ids: list[int], links: list[AssetLink]) -> None:
        if group_ids:
            await db_manager.insert_element_into_groups(self.store, group_ids, element_id)
        if links:
            await db_manager.insert_into_asset_links(
                self.store, [link.model_copy(update={"dest": element_id}) for link in links]
            )

    async def _insert(
        self,
        element: AssetElement,
        ext_name: str,
        user_ext: dict[str, str],
        group_ids: list[int],
        links: list[AssetLink],
    ) -> int:
        store = self.store
        element_id = await db_manager.insert_into_asset_element(store, element)
        await db_manager.insert_into_asset_ext_attributes(
            store, element_id, self._read_only_attributes(ext_name, creating=True), True
        )
        if user_ext:
            await db_manager.insert_into_asset_ext_attributes(store, element_id, user_ext, False)
        await self._write_relations(element_id, group_ids, links)

        if element.type_id == AssetType.DEVICE and element.subtype_id in MONITORED_SUBTYPES:
            monitor_type = subtypeid_to_subtype(element.subtype_id)
            try:
                device_type_id = await db_manager.select_monitor_device_type_id(store, monitor_type)
            except NotFoundError:
                logger.debug("no monitor device type for %s", monitor_type)
            else:
                name, _ = await db_manager.id_to_name_ext_name(store, element_id)
                monitor_id = await db_manager.insert_into_monitor_device(store, device_type_id, name)
                await db_manager.insert_into_monitor_asset_relation(store, monitor_id, element_id)
        return element_id

    async def _update(
        self,
        element: AssetElement,
        ext_name: str,
        user_ext: dict[str, str],
        group_ids: list[int],
        links: list[AssetLink],
    ) -> int:
        store = self.store
        element_id = element.id
        await db_manager.update_asset_element(store, element)

        current = await db_manager.select_ext_attributes(store, element_id)
        read_only = {
            key: attr.value
            for key, attr in current.items()
            if attr.read_only and key.startswith("create_")
        }
        read_only.update(self._read_only_attributes(ext_name, creating=False))
        await db_manager.delete_asset_ext_attributes_with_ro(store, element_id, True)
        await db_manager.insert_into_asset_ext_attributes(store, element_id, read_only, True)
        if user_ext:
            await db_manager.insert_into_asset_ext_attributes(store, element_id, user_ext, False)

        await db_manager.delete_asset_element_from_asset_groups(store, element_id)
        if element.type_id == AssetType.DEVICE:
            await db_manager.delete_asset_links_to(store, element_id)
        await self._write_relations(element_id, group_ids, links)
        return element_id
