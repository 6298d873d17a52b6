# api/assets/queries.py
"""
SQLAlchemy statement builders for the asset schema.
"""
from collections.abc import Iterable, Mapping

from sqlalchemy import and_, delete, exists, func, insert, literal, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite

from core.asset_types import AssetType, LinkType
from db_models import (
    AssetDeviceType,
    AssetElement,
    AssetElementType,
    AssetExtAttribute,
    AssetGroupRelation,
    AssetLink,
    DiscoveredDevice,
    MonitorAssetRelation,
    MonitorDeviceType,
)

# Depth of the denormalised ancestor join; deeper ancestors are not visible
PARENT_LEVELS = 10

_element = AssetElement.__table__
_ext = AssetExtAttribute.__table__


def dialect_insert(dialect: str, table):
    """Insert construct that supports ``on_conflict_do_update`` for the dialect."""
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"upsert is not supported for dialect '{dialect}'")


def _ext_name_join(element, keytag: str = "name"):
    ext = _ext.alias(f"ext_{element.name}")
    return ext, and_(ext.c.id_asset_element == element.c.id, ext.c.keytag == keytag)


def _parent_chain():
    """Element joined with its ``PARENT_LEVELS`` ancestors, nearest first."""
    base = _element.alias("el")
    parents = [_element.alias(f"p{level}") for level in range(1, PARENT_LEVELS + 1)]
    joined = base
    child = base
    for parent in parents:
        joined = joined.outerjoin(parent, parent.c.id == child.c.id_parent)
        child = parent
    return base, parents, joined


# ---------- Elements ----------

def select_id_by_name(name: str):
    """Select an element id by internal name."""
    return select(AssetElement.id).where(AssetElement.name == name)


def select_name_and_ext_name(element_id: int):
    """Select internal name and external name of an element."""
    el = _element.alias("el")
    ext, on = _ext_name_join(el)
    return select(el.c.name, ext.c.value).select_from(el.outerjoin(ext, on)).where(el.c.id == element_id)


def select_by_ext_name(ext_name: str):
    """Select id and internal name of the element carrying an external name."""
    return (
        select(AssetElement.id, AssetElement.name)
        .join(AssetExtAttribute, AssetExtAttribute.id_asset_element == AssetElement.id)
        .where(AssetExtAttribute.keytag == "name", AssetExtAttribute.value == ext_name)
    )


def select_element_by_id(element_id: int):
    """Select the core columns of an element by id."""
    return select(*_element_columns()).where(AssetElement.id == element_id)


def select_element_by_name(name: str):
    """Select the core columns of an element by internal name."""
    return select(*_element_columns()).where(AssetElement.name == name)


def _element_columns():
    return (
        AssetElement.id,
        AssetElement.name,
        AssetElement.status,
        AssetElement.priority,
        AssetElement.id_type.label("type_id"),
        AssetElement.id_subtype.label("subtype_id"),
        AssetElement.id_parent.label("parent_id"),
        AssetElement.asset_tag,
    )


def select_web_element_by_id(element_id: int):
    """Select an element with its type names, external name and parent."""
    el = _element.alias("el")
    parent = _element.alias("parent")
    ext, on = _ext_name_join(el)
    joined = (
        el.join(AssetElementType.__table__, AssetElementType.id == el.c.id_type)
        .join(AssetDeviceType.__table__, AssetDeviceType.id == el.c.id_subtype)
        .outerjoin(parent, parent.c.id == el.c.id_parent)
        .outerjoin(ext, on)
    )
    return (
        select(
            el.c.id,
            el.c.name,
            el.c.status,
            el.c.priority,
            el.c.id_type.label("type_id"),
            el.c.id_subtype.label("subtype_id"),
            el.c.id_parent.label("parent_id"),
            el.c.asset_tag,
            func.coalesce(ext.c.value, "").label("ext_name"),
            AssetElementType.name.label("type_name"),
            AssetDeviceType.name.label("subtype_name"),
            parent.c.name.label("parent_name"),
            parent.c.id_type.label("parent_type_id"),
        )
        .select_from(joined)
        .where(el.c.id == element_id)
    )


def insert_element(values: Mapping):
    return insert(AssetElement).values(**values)


def upsert_element(dialect: str, values: Mapping):
    """Insert an element, or update the row that already has its name."""
    stmt = dialect_insert(dialect, _element).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=[_element.c.name],
        set_={"name": stmt.excluded.name},
    )


def rename_element(element_id: int, name: str):
    return update(AssetElement).where(AssetElement.id == element_id).values(name=name)


def update_element(element_id: int, values: Mapping):
    return update(AssetElement).where(AssetElement.id == element_id).values(**values)


def delete_element(element_id: int):
    return delete(AssetElement).where(AssetElement.id == element_id)


def select_children_ids(parent_id: int):
    """Select direct children of an element."""
    return select(AssetElement.id).where(AssetElement.id_parent == parent_id).order_by(AssetElement.id)


def count_datacenters_excluding(element_id: int):
    return select(func.count(AssetElement.id)).where(
        AssetElement.id_type == int(AssetType.DATACENTER),
        AssetElement.id != element_id,
    )


def select_short_elements(type_id: int, subtype_id: int | None):
    """Select id and internal name of every element of a type (and subtype)."""
    stmt = select(AssetElement.id, AssetElement.name).where(AssetElement.id_type == type_id)
    if subtype_id:
        stmt = stmt.where(AssetElement.id_subtype == subtype_id)
    return stmt.order_by(AssetElement.id)


def select_all_elements(dc_id: int | None = None):
    """Select every element, or the datacenter and its whole subtree."""
    base, parents, joined = _parent_chain()
    stmt = select(
        base.c.id,
        base.c.name,
        base.c.status,
        base.c.priority,
        base.c.id_type.label("type_id"),
        base.c.id_subtype.label("subtype_id"),
        base.c.id_parent.label("parent_id"),
        base.c.asset_tag,
    ).select_from(joined)
    if dc_id is not None:
        stmt = stmt.where(or_(base.c.id == dc_id, *[p.c.id == dc_id for p in parents]))
    return stmt.order_by(base.c.id)


def select_super_parent(element_id: int):
    """Select id, name, type and subtype of up to ``PARENT_LEVELS`` ancestors."""
    base, parents, joined = _parent_chain()
    columns = []
    for level, parent in enumerate(parents, start=1):
        columns += [
            parent.c.id.label(f"id_parent{level}"),
            parent.c.name.label(f"parent_name{level}"),
            parent.c.id_type.label(f"id_type_parent{level}"),
            parent.c.id_subtype.label(f"id_subtype_parent{level}"),
        ]
    return select(*columns).select_from(joined).where(base.c.id == element_id)


def select_by_container(
    container_id: int,
    types: Iterable[int] = (),
    subtypes: Iterable[int] = (),
    without: str = "",
    status: str = "",
):
    """Select elements located anywhere below a container."""
    base, parents, joined = _parent_chain()
    stmt = (
        select(
            base.c.id,
            base.c.name,
            base.c.id_type.label("type_id"),
            base.c.id_subtype.label("subtype_id"),
            base.c.status,
        )
        .select_from(joined)
        .where(or_(*[p.c.id == container_id for p in parents]))
    )
    types, subtypes = list(types), list(subtypes)
    if subtypes:
        stmt = stmt.where(base.c.id_subtype.in_(subtypes))
    if types:
        stmt = stmt.where(base.c.id_type.in_(types))
    if status:
        stmt = stmt.where(base.c.status == status)
    if without == "location":
        stmt = stmt.where(base.c.id_parent.is_(None))
    elif without == "powerchain":
        stmt = stmt.where(
            ~exists().where(
                AssetLink.id_asset_device_dest == base.c.id,
                AssetLink.id_asset_link_type == int(LinkType.POWER_CHAIN),
            )
        )
    elif without:
        stmt = stmt.where(
            ~exists().where(
                AssetExtAttribute.id_asset_element == base.c.id,
                AssetExtAttribute.keytag == without,
            )
        )
    return stmt.order_by(base.c.id)


def select_element_types():
    return select(AssetElementType.name, AssetElementType.id)


def select_device_types():
    return select(AssetDeviceType.name, AssetDeviceType.id)


# ---------- Extended attributes ----------

def select_ext_attributes(element_id: int):
    return (
        select(AssetExtAttribute.keytag, AssetExtAttribute.value, AssetExtAttribute.read_only)
        .where(AssetExtAttribute.id_asset_element == element_id)
        .order_by(AssetExtAttribute.keytag)
    )


def upsert_ext_attributes(dialect: str, element_id: int, attributes: Mapping[str, str], read_only: bool):
    """
    Bulk insert attributes keyed by (keytag, element).

    An existing row is only overwritten when its read-only flag matches, so
    user data never replaces a system attribute and vice versa.
    """
    rows = [
        {"keytag": key, "value": value, "id_asset_element": element_id, "read_only": read_only}
        for key, value in attributes.items()
    ]
    stmt = dialect_insert(dialect, _ext).values(rows)
    return stmt.on_conflict_do_update(
        index_elements=[_ext.c.keytag, _ext.c.id_asset_element],
        set_={"value": stmt.excluded.value},
        where=_ext.c.read_only == stmt.excluded.read_only,
    )


def delete_ext_attributes(element_id: int, read_only: bool | None = None):
    stmt = delete(AssetExtAttribute).where(AssetExtAttribute.id_asset_element == element_id)
    if read_only is not None:
        stmt = stmt.where(AssetExtAttribute.read_only == read_only)
    return stmt


def select_rw_keytags():
    """Select every keytag used by a user-writable attribute."""
    return (
        select(AssetExtAttribute.keytag)
        .where(AssetExtAttribute.read_only.is_(False))
        .distinct()
        .order_by(AssetExtAttribute.keytag)
    )


def count_keytag(keytag: str, value: str):
    return select(func.count(AssetExtAttribute.id)).where(
        AssetExtAttribute.keytag == keytag,
        AssetExtAttribute.value == value,
    )


# ---------- Groups ----------

def select_element_groups(element_id: int):
    """Select groups an element belongs to, with their external names."""
    grp = _element.alias("grp")
    ext, on = _ext_name_join(grp)
    return (
        select(grp.c.id, grp.c.name, func.coalesce(ext.c.value, "").label("ext_name"))
        .select_from(
            AssetGroupRelation.__table__.join(grp, grp.c.id == AssetGroupRelation.id_asset_group).outerjoin(ext, on)
        )
        .where(AssetGroupRelation.id_asset_element == element_id)
        .order_by(grp.c.id)
    )


def insert_group_relations(group_ids: Iterable[int], element_id: int):
    rows = [{"id_asset_group": group_id, "id_asset_element": element_id} for group_id in group_ids]
    return insert(AssetGroupRelation).values(rows)


def delete_group_relations_by_element(element_id: int):
    return delete(AssetGroupRelation).where(AssetGroupRelation.id_asset_element == element_id)


def delete_group_relations_by_group(group_id: int):
    return delete(AssetGroupRelation).where(AssetGroupRelation.id_asset_group == group_id)


def max_groups_per_element():
    counts = (
        select(func.count(AssetGroupRelation.id).label("cnt"))
        .group_by(AssetGroupRelation.id_asset_element)
        .subquery()
    )
    return select(func.coalesce(func.max(counts.c.cnt), 0))


# ---------- Power links ----------

def insert_link_if_absent(src: int, dest: int, src_out: str | None, dest_in: str | None, link_type: int):
    """
    Insert a link between two devices unless the same sockets are already linked.

    Both ends must be device elements; otherwise nothing is inserted.
    """
    src_el = _element.alias("src_el")
    dest_el = _element.alias("dest_el")
    device = int(AssetType.DEVICE)
    duplicate = (
        select(AssetLink.id)
        .where(
            AssetLink.id_asset_device_src == src,
            AssetLink.id_asset_device_dest == dest,
            AssetLink.src_out.is_not_distinct_from(src_out),
            AssetLink.dest_in.is_not_distinct_from(dest_in),
        )
        .correlate(None)
        .exists()
    )
    source = (
        select(
            src_el.c.id,
            literal(src_out, AssetLink.src_out.type),
            dest_el.c.id,
            literal(dest_in, AssetLink.dest_in.type),
            literal(link_type),
        )
        .select_from(src_el)
        .join(dest_el, dest_el.c.id == dest)
        .where(src_el.c.id == src, src_el.c.id_type == device, dest_el.c.id_type == device, ~duplicate)
    )
    return insert(AssetLink).from_select(
        ["id_asset_device_src", "src_out", "id_asset_device_dest", "dest_in", "id_asset_link_type"],
        source,
    )


def delete_links_to(dest_id: int):
    return delete(AssetLink).where(AssetLink.id_asset_device_dest == dest_id)


def select_links_to(element_id: int, link_type: int):
    """Select links feeding an element, with the feeding device's name."""
    src_el = _element.alias("src_el")
    return (
        select(
            AssetLink.id_asset_device_src.label("src_id"),
            AssetLink.id_asset_device_dest.label("dest_id"),
            src_el.c.name.label("src_name"),
            AssetLink.src_out.label("src_socket"),
            AssetLink.dest_in.label("dest_socket"),
        )
        .join(src_el, src_el.c.id == AssetLink.id_asset_device_src)
        .where(AssetLink.id_asset_device_dest == element_id, AssetLink.id_asset_link_type == link_type)
        .order_by(AssetLink.id)
    )


def select_links_from(element_id: int):
    """Select ids of devices fed by an element."""
    return (
        select(AssetLink.id_asset_device_dest)
        .where(AssetLink.id_asset_device_src == element_id)
        .distinct()
    )


def max_links_per_device():
    counts = (
        select(func.count(AssetLink.id).label("cnt"))
        .where(AssetLink.id_asset_link_type == int(LinkType.POWER_CHAIN))
        .group_by(AssetLink.id_asset_device_dest)
        .subquery()
    )
    return select(func.coalesce(func.max(counts.c.cnt), 0))


# ---------- Monitor mapping ----------

def select_monitor_device_type_id(name: str):
    return select(MonitorDeviceType.id).where(MonitorDeviceType.name == name)


def insert_monitor_device(device_type_id: int, name: str):
    return insert(DiscoveredDevice).values(id_device_type=device_type_id, name=name)


def insert_monitor_asset_relation(monitor_id: int, element_id: int):
    return insert(MonitorAssetRelation).values(id_discovered_device=monitor_id, id_asset_element=element_id)


def delete_monitor_asset_relation_by_element(element_id: int):
    return delete(MonitorAssetRelation).where(MonitorAssetRelation.id_asset_element == element_id)


def select_monitor_id_by_element(element_id: int):
    return select(MonitorAssetRelation.id_discovered_device).where(
        MonitorAssetRelation.id_asset_element == element_id
    )
