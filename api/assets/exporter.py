# api/assets/exporter.py
"""
CSV export of the inventory in the layout the importer reads back.

The number of power-link and group columns follows the current maxima in
the database, so the layout of two exports can differ as data changes.
"""
import csv
import io
import logging
from datetime import datetime, timezone

from core.asset_types import AssetType, DeviceSubtype, subtypeid_to_subtype, typeid_to_type
from core.errors import AssetError, BadRequestError
from db import RowStore
from . import db_manager
from .models import AssetElement

logger = logging.getLogger(__name__)

CORE_COLUMNS = ("name", "type", "sub_type", "location", "status", "priority", "asset_tag")

KEYTAGS = (
    "description",
    "ip.1",
    "company",
    "site_name",
    "region",
    "country",
    "address",
    "contact_name",
    "contact_email",
    "contact_phone",
    "u_size",
    "manufacturer",
    "model",
    "serial_no",
    "runtime",
    "installation_date",
    "maintenance_date",
    "maintenance_due",
    "location_u_pos",
    "location_w_pos",
    "end_warranty_date",
    "hostname.1",
    "http_link.1",
)


class AssetExporter:
    def __init__(self, store: RowStore):
        self.store = store
        self._ext_names: dict[int, str] = {}

    async def _ext_name(self, element_id: int | None) -> str:
        if element_id is None:
            return ""
        if element_id not in self._ext_names:
            _, self._ext_names[element_id] = await db_manager.id_to_name_ext_name(self.store, element_id)
        return self._ext_names[element_id]

    async def keytags(self) -> list[str]:
        """Core keytags followed by any other user keytag found in the database."""
        extra = [
            keytag
            for keytag in await db_manager.select_ext_rw_attributes_keytags(self.store)
            if keytag not in KEYTAGS and keytag not in CORE_COLUMNS and keytag not in ("id", "name")
        ]
        return list(KEYTAGS) + extra

    def header(self, power_links: int, keytags: list[str], groups: int) -> list[str]:
        titles = list(CORE_COLUMNS)
        for i in range(1, power_links + 1):
            titles += [f"power_source.{i}", f"power_plug_src.{i}", f"power_input.{i}"]
        titles += keytags
        titles += [f"group.{i}" for i in range(1, groups + 1)]
        titles.append("id")
        return titles

    async def _row(self, element: AssetElement, power_links: int, keytags: list[str], groups: int) -> list[str]:
        store = self.store
        ext = await db_manager.select_ext_attributes(store, element.id)

        if element.type_id == AssetType.GROUP:
            sub_type = ext["type"].value if "type" in ext else ""
        elif element.subtype_id == DeviceSubtype.N_A:
            sub_type = ""
        else:
            sub_type = subtypeid_to_subtype(element.subtype_id)

        line = [
            await self._ext_name(element.id),
            typeid_to_type(element.type_id),
            sub_type,
            await self._ext_name(element.parent_id),
            element.status,
            f"P{element.priority}",
            element.asset_tag or "",
        ]

        links = []
        if element.type_id == AssetType.DEVICE:
            links = await db_manager.select_asset_device_links_to(store, element.id)
        for i in range(power_links):
            if i < len(links):
                link = links[i]
                line += [await self._ext_name(link.src_id), link.src_socket or "", link.dest_socket or ""]
            else:
                line += ["", "", ""]

        for keytag in keytags:
            attr = ext.get(keytag)
            if attr is None or attr.read_only:
                line.append("")
            elif keytag == "logical_asset":
                line.append(await self._logical_asset(attr.value))
            else:
                line.append(attr.value)

        member_of = await db_manager.select_asset_element_groups(store, element.id)
        for i in range(groups):
            line.append(member_of[i].ext_name if i < len(member_of) else "")

        line.append(element.name)
        return line

    async def _logical_asset(self, name: str) -> str:
        try:
            return await db_manager.name_to_ext_name(self.store, name)
        except AssetError:
            logger.warning("logical_asset '%s' does not resolve, exported as is", name)
            return name

    async def export(self, dc_name: str | None = None) -> str:
        """
        Render the inventory, or one datacenter's subtree, as CSV text.

        Raises:
            NotFoundError: If the datacenter does not exist
            BadRequestError: If ``dc_name`` is not a datacenter
        """
        dc_id = None
        if dc_name:
            dc = await db_manager.select_asset_element_by_name(self.store, dc_name)
            if dc.type_id != AssetType.DATACENTER:
                raise BadRequestError(f"dc: '{dc_name}' is not a datacenter", key="dc")
            dc_id = dc.id

        power_links = max(await db_manager.max_number_of_power_links(self.store), 1)
        groups = max(await db_manager.max_number_of_asset_groups(self.store), 1)
        keytags = await self.keytags()

        out = io.StringIO()
        writer = csv.writer(out, lineterminator="\n")
        writer.writerow(self.header(power_links, keytags, groups))
        count = 0
        for element in await db_manager.select_asset_element_all(self.store, dc_id):
            writer.writerow(await self._row(element, power_links, keytags, groups))
            count += 1
        logger.info("exported %s assets (dc=%s)", count, dc_name or "all")
        return out.getvalue()


def export_filename(dc_name: str | None) -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"asset_export_{dc_name or 'all'}_{stamp}.csv"
