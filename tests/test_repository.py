import pytest

from api.assets import db_manager, queries
from api.assets.models import AssetElement, AssetLink
from core.asset_types import AssetType, DeviceSubtype
from core.errors import BadRequestError, InternalError, NotFoundError


@pytest.mark.anyio
async def test_insert_appends_id_to_name(store):
    element_id = await db_manager.insert_into_asset_element(
        store, AssetElement(name="datacenter", type_id=AssetType.DATACENTER)
    )
    element = await db_manager.select_asset_element_by_id(store, element_id)
    assert element.name == f"datacenter-{element_id}"
    assert element.status == "nonactive"
    assert element.priority == 5
    assert await db_manager.name_to_asset_id(store, element.name) == element_id


@pytest.mark.anyio
async def test_insert_rejects_bad_name_and_type(store):
    with pytest.raises(BadRequestError):
        await db_manager.insert_into_asset_element(
            store, AssetElement(name="bad_name", type_id=AssetType.DATACENTER)
        )
    with pytest.raises(BadRequestError):
        await db_manager.insert_into_asset_element(store, AssetElement(name="thing", type_id=0))


@pytest.mark.anyio
async def test_datacenter_cannot_have_parent(store, add_asset):
    dc_id = await add_asset("Main DC", AssetType.DATACENTER)
    with pytest.raises(BadRequestError, match="datacenter with a parent"):
        await db_manager.insert_into_asset_element(
            store, AssetElement(name="datacenter", type_id=AssetType.DATACENTER, parent_id=dc_id)
        )


@pytest.mark.anyio
async def test_name_lookups(store, add_asset):
    dc_id = await add_asset("Main DC", AssetType.DATACENTER)
    name, ext_name = await db_manager.id_to_name_ext_name(store, dc_id)

    assert ext_name == "Main DC"
    assert await db_manager.ext_name_to_asset_id(store, "Main DC") == dc_id
    assert await db_manager.ext_name_to_asset_name(store, "Main DC") == name
    assert await db_manager.name_to_ext_name(store, name) == "Main DC"
    # Internal name first, external name as a fallback
    assert (await db_manager.select_asset_element_by_name(store, name)).id == dc_id
    assert (await db_manager.select_asset_element_by_name(store, "Main DC")).id == dc_id

    with pytest.raises(NotFoundError):
        await db_manager.name_to_asset_id(store, "missing-1")
    with pytest.raises(BadRequestError):
        await db_manager.name_to_asset_id(store, "bad@name")


@pytest.mark.anyio
async def test_update_element(store, add_asset):
    dc_id = await add_asset("Main DC", AssetType.DATACENTER)
    room_id = await add_asset("Room A", AssetType.ROOM, parent_id=dc_id)
    room = await db_manager.select_asset_element_by_id(store, room_id)

    await db_manager.update_asset_element(
        store, room.model_copy(update={"priority": 2, "asset_tag": "TAG-1", "status": "nonactive"})
    )
    updated = await db_manager.select_asset_element_by_id(store, room_id)
    assert (updated.priority, updated.asset_tag, updated.status) == (2, "TAG-1", "nonactive")
    assert updated.parent_id == dc_id

    with pytest.raises(NotFoundError):
        await db_manager.update_asset_element(store, room.model_copy(update={"id": 9999}))


@pytest.mark.anyio
async def test_delete_element_removes_ext_attributes(store, add_asset):
    dc_id = await add_asset("Main DC", AssetType.DATACENTER)
    await db_manager.insert_into_asset_ext_attributes(store, dc_id, {"description": "primary"}, False)

    assert await db_manager.delete_asset_element(store, dc_id) == 1
    assert await db_manager.select_ext_attributes(store, dc_id) == {}
    with pytest.raises(NotFoundError):
        await db_manager.select_asset_element_by_id(store, dc_id)
    with pytest.raises(NotFoundError):
        await db_manager.delete_asset_element(store, dc_id)


@pytest.mark.anyio
async def test_ext_attribute_upsert(store, add_asset):
    dc_id = await add_asset("Main DC", AssetType.DATACENTER)

    await db_manager.insert_into_asset_ext_attributes(store, dc_id, {"description": "old"}, False)
    await db_manager.insert_into_asset_ext_attributes(store, dc_id, {"description": "new"}, False)
    # A user value never replaces a system one
    await db_manager.insert_into_asset_ext_attributes(store, dc_id, {"name": "Hijacked"}, False)

    ext = await db_manager.select_ext_attributes(store, dc_id)
    assert ext["description"].value == "new"
    assert ext["description"].read_only is False
    assert ext["name"].value == "Main DC"
    assert ext["name"].read_only is True
    assert await db_manager.select_ext_rw_attributes_keytags(store) == ["description"]
    assert await db_manager.count_keytag(store, "description", "new") == 1

    await db_manager.delete_asset_ext_attributes_with_ro(store, dc_id, False)
    assert list(await db_manager.select_ext_attributes(store, dc_id)) == ["name"]


@pytest.mark.anyio
async def test_ext_attribute_insert_preconditions(store):
    with pytest.raises(BadRequestError):
        await db_manager.insert_into_asset_ext_attributes(store, 0, {"a": "b"}, False)
    with pytest.raises(BadRequestError, match="no attributes"):
        await db_manager.insert_into_asset_ext_attributes(store, 1, {}, False)


@pytest.mark.anyio
async def test_power_link_insert_is_idempotent(store, add_asset):
    dc_id = await add_asset("Main DC", AssetType.DATACENTER)
    ups_id = await add_asset("UPS 1", AssetType.DEVICE, dc_id, DeviceSubtype.UPS)
    srv_id = await add_asset("Server 1", AssetType.DEVICE, dc_id, DeviceSubtype.SERVER)

    link = AssetLink(src=ups_id, dest=srv_id, src_out="1", dest_in="A")
    assert await db_manager.insert_into_asset_link(store, link) == 1
    assert await db_manager.insert_into_asset_link(store, link) == 0
    assert await db_manager.insert_into_asset_link(store, AssetLink(src=ups_id, dest=srv_id)) == 1
    assert await db_manager.insert_into_asset_link(store, AssetLink(src=ups_id, dest=srv_id)) == 0

    links = await db_manager.select_asset_device_links_to(store, srv_id)
    assert [(link.src_id, link.src_socket, link.dest_socket) for link in links] == [
        (ups_id, "1", "A"),
        (ups_id, None, None),
    ]
    assert await db_manager.select_asset_device_links_src(store, ups_id) == [srv_id]
    assert await db_manager.max_number_of_power_links(store) == 2

    assert await db_manager.delete_asset_links_to(store, srv_id) == 2
    assert await db_manager.select_asset_device_links_src(store, ups_id) == []


@pytest.mark.anyio
async def test_power_link_requires_devices(store, add_asset):
    dc_id = await add_asset("Main DC", AssetType.DATACENTER)
    rack_id = await add_asset("Rack 1", AssetType.RACK, dc_id)
    srv_id = await add_asset("Server 1", AssetType.DEVICE, rack_id, DeviceSubtype.SERVER)

    assert await db_manager.insert_into_asset_link(store, AssetLink(src=rack_id, dest=srv_id)) == 0
    with pytest.raises(BadRequestError):
        await db_manager.insert_into_asset_link(store, AssetLink(src=0, dest=srv_id))
    with pytest.raises(BadRequestError):
        await db_manager.insert_into_asset_link(store, AssetLink(src=srv_id, dest=rack_id, link_type=7))
    with pytest.raises(InternalError, match="not all links were inserted"):
        await db_manager.insert_into_asset_links(store, [AssetLink(src=srv_id, dest=0)])


@pytest.mark.anyio
async def test_group_membership(store, add_asset):
    dc_id = await add_asset("Main DC", AssetType.DATACENTER)
    group_id = await add_asset("Critical", AssetType.GROUP, dc_id)
    srv_id = await add_asset("Server 1", AssetType.DEVICE, dc_id, DeviceSubtype.SERVER)

    assert await db_manager.max_number_of_asset_groups(store) == 0
    assert await db_manager.insert_element_into_groups(store, [group_id, group_id], srv_id) == 1
    assert await db_manager.insert_element_into_groups(store, [], srv_id) == 0

    groups = await db_manager.select_asset_element_groups(store, srv_id)
    assert [(g.id, g.ext_name) for g in groups] == [(group_id, "Critical")]
    assert await db_manager.max_number_of_asset_groups(store) == 1

    assert await db_manager.delete_asset_group_links(store, group_id) == 1
    assert await db_manager.select_asset_element_groups(store, srv_id) == []

    with pytest.raises(BadRequestError):
        await db_manager.insert_element_into_groups(store, [group_id], 0)


@pytest.mark.anyio
async def test_super_parent_nearest_first(store, add_asset):
    dc_id = await add_asset("Main DC", AssetType.DATACENTER)
    room_id = await add_asset("Room A", AssetType.ROOM, dc_id)
    row_id = await add_asset("Row 1", AssetType.ROW, room_id)
    rack_id = await add_asset("Rack 1", AssetType.RACK, row_id)
    srv_id = await add_asset("Server 1", AssetType.DEVICE, rack_id, DeviceSubtype.SERVER)

    parents = await db_manager.select_asset_element_super_parent(store, srv_id)
    assert [p.id for p in parents] == [rack_id, row_id, room_id, dc_id]
    assert [p.type_id for p in parents] == [
        AssetType.RACK,
        AssetType.ROW,
        AssetType.ROOM,
        AssetType.DATACENTER,
    ]
    assert await db_manager.select_asset_element_super_parent(store, dc_id) == []
    assert await db_manager.select_assets_by_parent(store, rack_id) == [srv_id]


@pytest.mark.anyio
async def test_super_parent_stops_at_ten_levels(store, add_asset):
    chain = [await add_asset("Main DC", AssetType.DATACENTER)]
    for level in range(12):
        chain.append(await add_asset(f"Box {level}", AssetType.DEVICE, chain[-1], DeviceSubtype.SERVER))

    parents = await db_manager.select_asset_element_super_parent(store, chain[-1])
    assert len(parents) == queries.PARENT_LEVELS
    assert [p.id for p in parents] == list(reversed(chain[2:-1]))
    assert chain[0] not in [p.id for p in parents]


@pytest.mark.anyio
async def test_update_element_status(store, add_asset):
    rack_id = await add_asset("Rack 1", AssetType.RACK)
    assert await db_manager.update_asset_element_status(store, rack_id, "nonactive") == 1
    assert (await db_manager.select_asset_element_by_id(store, rack_id)).status == "nonactive"


@pytest.mark.anyio
async def test_assets_by_container(store, add_asset):
    dc_id = await add_asset("Main DC", AssetType.DATACENTER)
    rack_id = await add_asset("Rack 1", AssetType.RACK, dc_id)
    ups_id = await add_asset("UPS 1", AssetType.DEVICE, rack_id, DeviceSubtype.UPS)
    srv_id = await add_asset("Server 1", AssetType.DEVICE, rack_id, DeviceSubtype.SERVER, status="nonactive")
    await db_manager.insert_into_asset_link(store, AssetLink(src=ups_id, dest=srv_id))

    everything = await db_manager.select_assets_by_container(store, dc_id)
    assert [a.id for a in everything] == [rack_id, ups_id, srv_id]

    devices = await db_manager.select_assets_by_container(store, dc_id, types=[AssetType.DEVICE])
    assert [a.id for a in devices] == [ups_id, srv_id]

    servers = await db_manager.select_assets_by_container(store, dc_id, subtypes=[DeviceSubtype.SERVER])
    assert [a.id for a in servers] == [srv_id]

    unpowered = await db_manager.select_assets_by_container(
        store, dc_id, types=[AssetType.DEVICE], without="powerchain"
    )
    assert [a.id for a in unpowered] == [ups_id]

    active = await db_manager.select_assets_by_container(store, rack_id, status="active")
    assert [a.id for a in active] == [ups_id]


@pytest.mark.anyio
async def test_get_item(store, add_asset):
    dc_id = await add_asset("Main DC", AssetType.DATACENTER)
    rack_id = await add_asset("Rack 1", AssetType.RACK, dc_id)
    ups_id = await add_asset("UPS 1", AssetType.DEVICE, rack_id, DeviceSubtype.UPS)
    srv_id = await add_asset("Server 1", AssetType.DEVICE, rack_id, DeviceSubtype.SERVER)
    group_id = await add_asset("Critical", AssetType.GROUP, dc_id)
    await db_manager.insert_into_asset_link(store, AssetLink(src=ups_id, dest=srv_id, src_out="3"))
    await db_manager.insert_element_into_groups(store, [group_id], srv_id)
    await db_manager.insert_into_asset_ext_attributes(store, srv_id, {"model": "R650"}, False)

    item = await db_manager.get_item(store, srv_id)
    ups_name, _ = await db_manager.id_to_name_ext_name(store, ups_id)
    rack_name, _ = await db_manager.id_to_name_ext_name(store, rack_id)

    assert item.name == "Server 1"
    assert (item.type, item.sub_type, item.priority) == ("device", "server", "P5")
    assert (item.location, item.location_id, item.location_type) == ("Rack 1", rack_name, "rack")
    assert [(e.key, e.value, e.read_only) for e in item.ext] == [("model", "R650", False)]
    assert [g.name for g in item.groups] == ["Critical"]
    assert [(p.src_name, p.src_id, p.src_socket) for p in item.powers] == [("UPS 1", ups_name, "3")]
    assert [p.name for p in item.parents] == ["Rack 1", "Main DC"]

    rack = await db_manager.get_item(store, rack_id)
    assert rack.sub_type == ""
    assert rack.powers == []


@pytest.mark.anyio
async def test_get_items(store, add_asset):
    dc_id = await add_asset("Main DC", AssetType.DATACENTER)
    ups_id = await add_asset("UPS 1", AssetType.DEVICE, dc_id, DeviceSubtype.UPS)
    await add_asset("Server 1", AssetType.DEVICE, dc_id, DeviceSubtype.SERVER)

    assert list(await db_manager.get_items(store, "datacenters")) == [dc_id]
    assert list(await db_manager.get_items(store, "device", "ups")) == [ups_id]
    with pytest.raises(BadRequestError, match="Expected datacenters"):
        await db_manager.get_items(store, "planets")
    with pytest.raises(BadRequestError, match="Expected ups"):
        await db_manager.get_items(store, "device", "toaster")


@pytest.mark.anyio
async def test_dictionaries_seeded(store):
    element_types = await db_manager.read_element_types(store)
    device_types = await db_manager.read_device_types(store)
    assert element_types["datacenter"] == AssetType.DATACENTER
    assert device_types["ups"] == DeviceSubtype.UPS
    assert device_types["N_A"] == DeviceSubtype.N_A
    assert await db_manager.select_monitor_device_type_id(store, "ups") > 0
