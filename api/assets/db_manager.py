# api/assets/db_manager.py
"""
Asset Repository: CRUD primitives over the asset schema.

Every function takes the caller's ``RowStore`` and runs inside whatever
transaction the caller holds. Failures are raised as ``AssetError``
subclasses; driver exceptions are converted by the Row Store.
"""
import logging
import secrets
from collections.abc import Iterable, Mapping

from core.asset_types import (
    AssetType,
    DeviceSubtype,
    LinkType,
    is_ok_link_type,
    is_ok_name,
    is_ok_type,
    subtype_to_subtypeid,
    subtypeid_to_subtype,
    type_to_typeid,
    typeid_to_type,
)
from core.errors import AssetError, BadRequestError, InternalError, NotFoundError
from db import RowStore
from . import queries
from .models import (
    AssetDetail,
    AssetElement,
    AssetLink,
    ContainedAsset,
    DbAssetLink,
    ExtAttrRead,
    ExtAttrValue,
    GroupRead,
    GroupRef,
    ParentRead,
    ParentRef,
    PowerRead,
    WebAssetElement,
)

logger = logging.getLogger(__name__)

# Ext attribute holding the human readable name of an element
EXT_NAME_KEY = "name"


def _element(row) -> AssetElement:
    return AssetElement.model_validate(dict(row._mapping))


# ---------- Name and identity ----------

async def name_to_asset_id(store: RowStore, name: str) -> int:
    """
    Resolve an internal name to an element id.

    Raises:
        BadRequestError: If the name has prohibited characters
        NotFoundError: If no element has this name
    """
    if not is_ok_name(name):
        raise BadRequestError(f"wrong element name '{name}'", key=name)
    return await store.select_value(queries.select_id_by_name(name), key=name)


async def id_to_name_ext_name(store: RowStore, element_id: int) -> tuple[str, str]:
    """Return (internal name, external name); the latter is empty when unset."""
    row = await store.select_row(queries.select_name_and_ext_name(element_id), key=str(element_id))
    return row[0], row[1] or ""


async def ext_name_to_asset_name(store: RowStore, ext_name: str) -> str:
    row = await store.select_row(queries.select_by_ext_name(ext_name), key=ext_name)
    return row.name


async def ext_name_to_asset_id(store: RowStore, ext_name: str) -> int:
    row = await store.select_row(queries.select_by_ext_name(ext_name), key=ext_name)
    return row.id


async def name_to_ext_name(store: RowStore, name: str) -> str:
    element_id = await name_to_asset_id(store, name)
    _, ext_name = await id_to_name_ext_name(store, element_id)
    return ext_name


async def select_asset_element_by_id(store: RowStore, element_id: int) -> AssetElement:
    row = await store.select_row(queries.select_element_by_id(element_id), key=str(element_id))
    return _element(row)


async def select_asset_element_by_name(store: RowStore, name: str) -> AssetElement:
    """Find an element by internal name, falling back to its external name."""
    if is_ok_name(name):
        try:
            row = await store.select_row(queries.select_element_by_name(name), key=name)
            return _element(row)
        except NotFoundError:
            pass
    element_id = await ext_name_to_asset_id(store, name)
    return await select_asset_element_by_id(store, element_id)


async def select_asset_element_web_by_id(store: RowStore, element_id: int) -> WebAssetElement:
    row = await store.select_row(queries.select_web_element_by_id(element_id), key=str(element_id))
    return WebAssetElement.model_validate(dict(row._mapping))


# ---------- Element writes ----------

def _check_placement(element: AssetElement) -> None:
    if element.type_id == 0:
        raise BadRequestError("0 value of element_type_id is not allowed", key=element.name)
    if not is_ok_type(element.type_id):
        raise BadRequestError(f"unknown element type id {element.type_id}", key=element.name)
    if element.type_id == AssetType.DATACENTER and element.parent_id:
        raise BadRequestError("cannot insert datacenter with a parent", key=element.name)


async def insert_into_asset_element(store: RowStore, element: AssetElement, update: bool = False) -> int:
    """
    Insert an element and return its id.

    A plain insert stores the name with a random suffix first and renames the
    row to ``<name>-<id>`` once the id is known. With ``update`` the element
    is upserted by its name instead and keeps that name.

    Raises:
        BadRequestError: On a bad name, an unknown type or a located datacenter
    """
    if not is_ok_name(element.name):
        raise BadRequestError("wrong element name", key=element.name)
    _check_placement(element)

    values = {
        "name": element.name,
        "id_type": element.type_id,
        "id_subtype": element.subtype_id or int(DeviceSubtype.N_A),
        "id_parent": element.parent_id or None,
        "status": element.status,
        "priority": element.priority,
        "asset_tag": element.asset_tag or None,
    }

    if update:
        await store.execute(queries.upsert_element(store.dialect_name, values), key=element.name)
        return await name_to_asset_id(store, element.name)

    values["name"] = f"{element.name}-@@-{secrets.token_hex(4)}"
    new_id = await store.insert(queries.insert_element(values), key=element.name)
    await store.execute(queries.rename_element(new_id, f"{element.name}-{new_id}"), key=element.name)
    return new_id


async def update_asset_element(store: RowStore, element: AssetElement) -> int:
    """
    Update placement, status, priority, tag and subtype of an existing element.

    Raises:
        BadRequestError: On an unknown type or a located datacenter
        NotFoundError: If the element does not exist
    """
    _check_placement(element)
    values = {
        "id_parent": element.parent_id or None,
        "status": element.status,
        "priority": element.priority,
        "asset_tag": element.asset_tag or None,
        "id_subtype": element.subtype_id or int(DeviceSubtype.N_A),
    }
    affected = await store.execute(queries.update_element(element.id, values), key=element.name)
    if affected == 0:
        raise NotFoundError(key=element.name or str(element.id))
    return affected


async def update_asset_element_status(store: RowStore, element_id: int, status: str) -> int:
    return await store.execute(queries.update_element(element_id, {"status": status}), key=str(element_id))


async def delete_asset_element(store: RowStore, element_id: int) -> int:
    """Delete an element together with its extended attributes."""
    await store.execute(queries.delete_ext_attributes(element_id), key=str(element_id))
    affected = await store.execute(queries.delete_element(element_id), key=str(element_id))
    if affected == 0:
        raise NotFoundError(key=str(element_id))
    return affected


# ---------- Extended attributes ----------

async def select_ext_attributes(store: RowStore, element_id: int) -> dict[str, ExtAttrValue]:
    rows = await store.select(queries.select_ext_attributes(element_id), key=str(element_id))
    return {row.keytag: ExtAttrValue(value=row.value, read_only=row.read_only) for row in rows}


async def insert_into_asset_ext_attributes(
    store: RowStore,
    element_id: int,
    attributes: Mapping[str, str],
    read_only: bool,
) -> int:
    """
    Upsert attributes of one element with the given read-only flag.

    Raises:
        BadRequestError: If the element id is 0 or there is nothing to insert
    """
    if element_id == 0:
        raise BadRequestError("appropriate element id is not specified")
    if not attributes:
        raise BadRequestError("no attributes to insert", key=str(element_id))
    stmt = queries.upsert_ext_attributes(store.dialect_name, element_id, attributes, read_only)
    return await store.execute(stmt, key=str(element_id))


async def delete_asset_ext_attributes_with_ro(store: RowStore, element_id: int, read_only: bool) -> int:
    return await store.execute(queries.delete_ext_attributes(element_id, read_only), key=str(element_id))


async def select_ext_rw_attributes_keytags(store: RowStore) -> list[str]:
    return [row.keytag for row in await store.select(queries.select_rw_keytags())]


async def count_keytag(store: RowStore, keytag: str, value: str) -> int:
    return await store.select_value(queries.count_keytag(keytag, value), key=keytag)


# ---------- Groups ----------

async def select_asset_element_groups(store: RowStore, element_id: int) -> list[GroupRef]:
    rows = await store.select(queries.select_element_groups(element_id), key=str(element_id))
    return [GroupRef(id=row.id, name=row.name, ext_name=row.ext_name) for row in rows]


async def insert_element_into_groups(store: RowStore, groups: Iterable[int], element_id: int) -> int:
    """
    Add an element to groups.

    Raises:
        BadRequestError: If the element id is 0
        InternalError: If fewer rows than groups were inserted
    """
    if element_id == 0:
        raise BadRequestError("appropriate element id is not specified")
    groups = sorted(set(groups))
    if not groups:
        return 0
    affected = await store.execute(queries.insert_group_relations(groups, element_id), key=str(element_id))
    if affected != len(groups):
        raise InternalError("not all links were inserted", key=str(element_id))
    return affected


async def delete_asset_element_from_asset_groups(store: RowStore, element_id: int) -> int:
    return await store.execute(queries.delete_group_relations_by_element(element_id), key=str(element_id))


async def delete_asset_group_links(store: RowStore, group_id: int) -> int:
    return await store.execute(queries.delete_group_relations_by_group(group_id), key=str(group_id))


async def max_number_of_asset_groups(store: RowStore) -> int:
    return int(await store.select_value(queries.max_groups_per_element()))


# ---------- Power links ----------

async def insert_into_asset_link(store: RowStore, link: AssetLink) -> int:
    """
    Insert a power link unless the same one exists; return inserted row count.

    Raises:
        BadRequestError: On a zero src/dest id or an unknown link type
    """
    if link.src == 0:
        raise BadRequestError("0 value of src element id is not allowed")
    if link.dest == 0:
        raise BadRequestError("0 value of dest element id is not allowed")
    if not is_ok_link_type(link.link_type):
        raise BadRequestError(f"wrong link type {link.link_type}")
    stmt = queries.insert_link_if_absent(
        link.src, link.dest, link.src_out or None, link.dest_in or None, link.link_type
    )
    return await store.execute(stmt, key=f"{link.src}->{link.dest}")


async def insert_into_asset_links(store: RowStore, links: Iterable[AssetLink]) -> int:
    total = 0
    for link in links:
        try:
            total += await insert_into_asset_link(store, link)
        except AssetError as exc:
            logger.error("power link %s -> %s: %s", link.src, link.dest, exc.message)
            raise InternalError(f"not all links were inserted: {exc.message}", key=exc.key) from exc
    return total


async def delete_asset_links_to(store: RowStore, dest_id: int) -> int:
    return await store.execute(queries.delete_links_to(dest_id), key=str(dest_id))


async def select_asset_device_links_to(
    store: RowStore, element_id: int, link_type: int = int(LinkType.POWER_CHAIN)
) -> list[DbAssetLink]:
    rows = await store.select(queries.select_links_to(element_id, link_type), key=str(element_id))
    return [DbAssetLink.model_validate(dict(row._mapping)) for row in rows]


async def select_asset_device_links_src(store: RowStore, element_id: int) -> list[int]:
    """Ids of the devices powered by an element."""
    rows = await store.select(queries.select_links_from(element_id), key=str(element_id))
    return [row[0] for row in rows]


async def max_number_of_power_links(store: RowStore) -> int:
    return int(await store.select_value(queries.max_links_per_device()))


# ---------- Monitor mapping ----------

async def select_monitor_device_type_id(store: RowStore, name: str) -> int:
    return await store.select_value(queries.select_monitor_device_type_id(name), key=name)


async def insert_into_monitor_device(store: RowStore, device_type_id: int, name: str) -> int:
    return await store.insert(queries.insert_monitor_device(device_type_id, name), key=name)


async def insert_into_monitor_asset_relation(store: RowStore, monitor_id: int, element_id: int) -> int:
    if monitor_id == 0:
        raise BadRequestError("monitor id 0 is not allowed")
    if element_id == 0:
        raise BadRequestError("appropriate element id is not specified")
    stmt = queries.insert_monitor_asset_relation(monitor_id, element_id)
    return await store.insert(stmt, key=str(element_id))


async def delete_monitor_asset_relation_by_a(store: RowStore, element_id: int) -> int:
    stmt = queries.delete_monitor_asset_relation_by_element(element_id)
    return await store.execute(stmt, key=str(element_id))


async def convert_asset_to_monitor(store: RowStore, element_id: int) -> int | None:
    """Return the discovered device bound to an asset, if there is one."""
    rows = await store.select(queries.select_monitor_id_by_element(element_id), key=str(element_id))
    row = next(rows, None)
    return row[0] if row is not None else None


# ---------- Hierarchy and listings ----------

async def select_asset_element_super_parent(store: RowStore, element_id: int) -> list[ParentRef]:
    """
    Ancestors of an element, nearest first.

    Only ``queries.PARENT_LEVELS`` levels are visible; anything above is cut.
    """
    row = await store.select_row(queries.select_super_parent(element_id), key=str(element_id))
    data = row._mapping
    parents = []
    for level in range(1, queries.PARENT_LEVELS + 1):
        parent_id = data[f"id_parent{level}"]
        if parent_id is None:
            break
        parents.append(
            ParentRef(
                id=parent_id,
                name=data[f"parent_name{level}"],
                type_id=data[f"id_type_parent{level}"],
                subtype_id=data[f"id_subtype_parent{level}"],
            )
        )
    return parents


async def select_assets_by_parent(store: RowStore, parent_id: int) -> list[int]:
    rows = await store.select(queries.select_children_ids(parent_id), key=str(parent_id))
    return [row[0] for row in rows]


async def select_assets_by_container(
    store: RowStore,
    container_id: int,
    types: Iterable[int] = (),
    subtypes: Iterable[int] = (),
    without: str = "",
    status: str = "",
) -> list[ContainedAsset]:
    """
    Elements anywhere below a container.

    ``without`` narrows the result to elements with no location
    (``"location"``), no inbound power link (``"powerchain"``) or no ext
    attribute of the given keytag.
    """
    stmt = queries.select_by_container(container_id, types, subtypes, without, status)
    rows = await store.select(stmt, key=str(container_id))
    return [ContainedAsset.model_validate(dict(row._mapping)) for row in rows]


async def select_short_elements(store: RowStore, type_id: int, subtype_id: int | None = None) -> dict[int, str]:
    rows = await store.select(queries.select_short_elements(type_id, subtype_id))
    return {row.id: row.name for row in rows}


async def select_asset_element_all(store: RowStore, dc_id: int | None = None) -> list[AssetElement]:
    rows = await store.select(queries.select_all_elements(dc_id))
    return [_element(row) for row in rows]


async def count_datacenters_excluding(store: RowStore, element_id: int) -> int:
    return await store.select_value(queries.count_datacenters_excluding(element_id))


async def read_element_types(store: RowStore) -> dict[str, int]:
    return {row.name: row.id for row in await store.select(queries.select_element_types())}


async def read_device_types(store: RowStore) -> dict[str, int]:
    return {row.name: row.id for row in await store.select(queries.select_device_types())}


# ---------- Composite reads ----------

async def get_item(store: RowStore, element_id: int) -> AssetDetail:
    """
    Full description of one asset: core columns, ext attributes, groups,
    power sources (devices only) and the ancestor chain.
    """
    el = await select_asset_element_web_by_id(store, element_id)
    ext = await select_ext_attributes(store, element_id)
    groups = await select_asset_element_groups(store, element_id)

    powers: list[PowerRead] = []
    if el.type_id == AssetType.DEVICE:
        for link in await select_asset_device_links_to(store, element_id):
            _, src_ext_name = await id_to_name_ext_name(store, link.src_id)
            powers.append(
                PowerRead(
                    src_name=src_ext_name,
                    src_id=link.src_name,
                    src_socket=link.src_socket,
                    dest_socket=link.dest_socket,
                )
            )

    parents = []
    for parent in await select_asset_element_super_parent(store, element_id):
        _, parent_ext_name = await id_to_name_ext_name(store, parent.id)
        parents.append(
            ParentRead(
                id=parent.name,
                name=parent_ext_name,
                type=typeid_to_type(parent.type_id),
                sub_type=_display_subtype(parent.subtype_id),
            )
        )

    sub_type = _display_subtype(el.subtype_id)
    if el.type_id == AssetType.GROUP and "type" in ext:
        sub_type = ext["type"].value

    return AssetDetail(
        id=el.name,
        name=el.ext_name,
        status=el.status,
        priority=f"P{el.priority}",
        type=el.type_name,
        sub_type=sub_type,
        location=parents[0].name if parents else None,
        location_id=el.parent_name,
        location_type=typeid_to_type(el.parent_type_id) if el.parent_type_id else None,
        asset_tag=el.asset_tag,
        ext=[
            ExtAttrRead(key=key, value=attr.value, read_only=attr.read_only)
            for key, attr in ext.items()
            if key != EXT_NAME_KEY
        ],
        groups=[GroupRead(id=group.name, name=group.ext_name) for group in groups],
        powers=powers,
        parents=parents,
    )


def _display_subtype(subtype_id: int) -> str:
    return "" if subtype_id == DeviceSubtype.N_A else subtypeid_to_subtype(subtype_id)


async def get_json_asset(store: RowStore, element_id: int) -> str:
    """JSON snapshot of an asset as handed to the activation service."""
    return (await get_item(store, element_id)).model_dump_json()


async def get_items(store: RowStore, type_name: str, subtype_name: str = "") -> dict[int, str]:
    """
    Short listing (id, internal name) of every element of a type.

    Raises:
        BadRequestError: On an unknown type or subtype name
    """
    type_id = type_to_typeid(type_name)
    if type_id == 0:
        raise BadRequestError(
            f"Received '{type_name}'. Expected datacenters,rooms,rows,racks,groups,devices",
            key="type",
        )
    subtype_id = None
    if subtype_name:
        subtype_id = subtype_to_subtypeid(subtype_name)
        if subtype_id == 0:
            raise BadRequestError(
                f"Received '{subtype_name}'. Expected ups, epdu, pdu, genset, sts, server, feed",
                key="subtype",
            )
    return await select_short_elements(store, type_id, subtype_id)
