# core/asset_types.py
"""
Closed registries of element types, device subtypes and link types.

The numeric ids match the rows seeded into the dictionary tables.
"""
import re
from enum import IntEnum


class AssetType(IntEnum):
    GROUP = 1
    DATACENTER = 2
    ROOM = 3
    ROW = 4
    RACK = 5
    DEVICE = 6


class DeviceSubtype(IntEnum):
    UPS = 1
    GENSET = 2
    EPDU = 3
    PDU = 4
    SERVER = 5
    FEED = 6
    STS = 7
    SWITCH = 8
    STORAGE = 9
    VM = 10
    N_A = 11


class LinkType(IntEnum):
    POWER_CHAIN = 1


TYPE_NAMES = {t: t.name.lower() for t in AssetType}
SUBTYPE_NAMES = {s: ("N_A" if s is DeviceSubtype.N_A else s.name.lower()) for s in DeviceSubtype}
LINK_TYPE_NAMES = {LinkType.POWER_CHAIN: "power chain"}

CONTAINER_TYPES = frozenset(
    {AssetType.DATACENTER, AssetType.ROOM, AssetType.ROW, AssetType.RACK}
)

# Subtypes that take part in the power chain and need an activation check
POWER_SUBTYPES = frozenset(
    {
        DeviceSubtype.UPS,
        DeviceSubtype.GENSET,
        DeviceSubtype.EPDU,
        DeviceSubtype.PDU,
        DeviceSubtype.STS,
        DeviceSubtype.FEED,
    }
)

# Subtypes the monitoring side knows how to discover
MONITORED_SUBTYPES = (
    DeviceSubtype.UPS,
    DeviceSubtype.EPDU,
    DeviceSubtype.PDU,
    DeviceSubtype.GENSET,
    DeviceSubtype.STS,
    DeviceSubtype.SERVER,
    DeviceSubtype.FEED,
)

# Which parent types each element type may be located in
ALLOWED_PARENTS = {
    AssetType.DATACENTER: frozenset(),
    AssetType.ROOM: frozenset({AssetType.DATACENTER}),
    AssetType.ROW: frozenset({AssetType.DATACENTER, AssetType.ROOM}),
    AssetType.RACK: frozenset({AssetType.DATACENTER, AssetType.ROOM, AssetType.ROW}),
    AssetType.GROUP: CONTAINER_TYPES,
    AssetType.DEVICE: CONTAINER_TYPES,
}

RC0_NAME = "rackcontroller-0"
STATUSES = ("active", "nonactive")
MAX_PRIORITY = 5
DEFAULT_PRIORITY = 5

_PROHIBITED_NAME = re.compile(r"[_@%;\"]")


def is_ok_name(name: str) -> bool:
    """Internal names are non-empty and free of ``_ @ % ; "``."""
    return bool(name) and _PROHIBITED_NAME.search(name) is None


def type_to_typeid(name: str) -> int:
    """Map a type name (singular or plural) to its id, 0 when unknown."""
    name = (name or "").strip().lower()
    for asset_type, type_name in TYPE_NAMES.items():
        if name in (type_name, type_name + "s"):
            return int(asset_type)
    return 0


def subtype_to_subtypeid(name: str) -> int:
    """Map a device subtype name to its id; empty means N_A, unknown is 0."""
    name = (name or "").strip().lower()
    if not name or name == "n_a":
        return int(DeviceSubtype.N_A)
    for subtype, subtype_name in SUBTYPE_NAMES.items():
        if name in (subtype_name.lower(), subtype_name.lower() + "s"):
            return int(subtype)
    return 0


def typeid_to_type(type_id: int) -> str:
    try:
        return TYPE_NAMES[AssetType(type_id)]
    except ValueError:
        return ""


def subtypeid_to_subtype(subtype_id: int) -> str:
    try:
        return SUBTYPE_NAMES[DeviceSubtype(subtype_id)]
    except ValueError:
        return ""


def is_ok_type(type_id: int) -> bool:
    return type_id in {t.value for t in AssetType}


def is_ok_link_type(link_type: int) -> bool:
    return link_type in {t.value for t in LinkType}


def is_container(type_id: int) -> bool:
    return type_id in CONTAINER_TYPES
