import pytest

from main import app as fastapi_app
from core import deps
from core.collaborators import AssetNotifier
from core.errors import NotificationError


class FailingNotifier(AssetNotifier):
    async def notify(self, asset, operation):
        raise NotificationError("Error during configuration sending of asset change notification. Consult system log.")


async def _create(async_client, **payload):
    resp = await async_client.post("/api/v1/asset", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


@pytest.mark.anyio
async def test_health(async_client):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}


@pytest.mark.anyio
async def test_create_and_read_asset(async_client, notifier):
    dc_id = await _create(async_client, name="Main DC", type="datacenter")
    room_id = await _create(
        async_client, name="Room A", type="room", location="Main DC", ext={"description": "ground floor"}
    )
    assert dc_id.startswith("datacenter-")
    assert notifier.operations == ["create", "create"]

    resp = await async_client.get(f"/api/v1/asset/{room_id}")
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["id"] == room_id
    assert body["name"] == "Room A"
    assert (body["type"], body["sub_type"], body["status"], body["priority"]) == ("room", "", "active", "P5")
    assert (body["location"], body["location_id"], body["location_type"]) == ("Main DC", dc_id, "datacenter")
    assert {"key": "description", "value": "ground floor", "read_only": False} in body["ext"]
    assert [p["id"] for p in body["parents"]] == [dc_id]

    # All-digit path segments are element ids
    resp = await async_client.get("/api/v1/asset/1")
    assert resp.status_code == 200
    assert resp.json()["name"] == "Main DC"

    resp = await async_client.get("/api/v1/asset/missing-42")
    assert resp.status_code == 404

    # Only ASCII digits select by id
    resp = await async_client.get("/api/v1/asset/\u00b2")
    assert resp.status_code == 404


@pytest.mark.anyio
async def test_create_validation(async_client):
    await _create(async_client, name="Main DC", type="datacenter")

    resp = await async_client.post("/api/v1/asset", json={"id": "x-1", "name": "X", "type": "room"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "key 'id' is forbidden to be used"

    resp = await async_client.post("/api/v1/asset", json={"name": "X"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Parameter 'type' is required"

    resp = await async_client.post("/api/v1/asset", json={"name": "Main DC", "type": "datacenter"})
    assert resp.status_code == 409

    resp = await async_client.post("/api/v1/asset", json={"name": "Room", "type": "room", "location": "Nowhere"})
    assert resp.status_code == 404
    assert resp.json()["detail"] == "location: element 'Nowhere' not found."


@pytest.mark.anyio
async def test_activation_refused_on_create(async_client, activator):
    await _create(async_client, name="Main DC", type="datacenter")
    activator.activable = False

    resp = await async_client.post(
        "/api/v1/asset", json={"name": "UPS 1", "type": "device", "sub_type": "ups", "location": "Main DC"}
    )
    assert resp.status_code == 409
    assert "Licensing limitation" in resp.json()["detail"]

    await _create(
        async_client, name="UPS 1", type="device", sub_type="ups", location="Main DC", status="nonactive"
    )


@pytest.mark.anyio
async def test_notification_failure_keeps_the_write(async_client):
    fastapi_app.dependency_overrides[deps.get_notifier] = FailingNotifier

    resp = await async_client.post("/api/v1/asset", json={"name": "Main DC", "type": "datacenter"})
    assert resp.status_code == 500
    assert "notification" in resp.json()["detail"]

    resp = await async_client.get("/api/v1/assets", params={"type": "datacenter"})
    assert [item["name"] for item in resp.json()["datacenters"]] == ["Main DC"]


@pytest.mark.anyio
async def test_list_assets(async_client):
    dc_id = await _create(async_client, name="Main DC", type="datacenter")
    room_id = await _create(async_client, name="Room A", type="room", location="Main DC")
    ups_id = await _create(
        async_client, name="UPS 1", type="device", sub_type="ups", location="Room A", status="nonactive"
    )

    resp = await async_client.get("/api/v1/assets", params={"type": "datacenters"})
    assert resp.status_code == 200
    assert resp.json() == {"datacenters": [{"id": dc_id, "name": "Main DC"}]}

    resp = await async_client.get("/api/v1/assets", params={"type": "device", "subtype": "ups"})
    assert resp.json() == {"devices": [{"id": ups_id, "name": "UPS 1"}]}

    resp = await async_client.get("/api/v1/assets", params={"type": "planets"})
    assert resp.status_code == 400

    resp = await async_client.get(f"/api/v1/assets/in/{dc_id}")
    assert [item["id"] for item in resp.json()] == [room_id, ups_id]

    resp = await async_client.get(f"/api/v1/assets/in/{dc_id}", params={"types": "device", "status": "nonactive"})
    assert resp.json() == [
        {"id": ups_id, "name": "UPS 1", "type": "device", "sub_type": "ups", "status": "nonactive"}
    ]

    resp = await async_client.get(f"/api/v1/assets/in/{dc_id}", params={"types": "spaceship"})
    assert resp.status_code == 400
    resp = await async_client.get(f"/api/v1/assets/in/{dc_id}", params={"status": "sleeping"})
    assert resp.status_code == 400


@pytest.mark.anyio
async def test_update_asset(async_client, notifier):
    await _create(async_client, name="Main DC", type="datacenter")
    room_id = await _create(async_client, name="Room A", type="room", location="Main DC", description="first")

    resp = await async_client.put(
        f"/api/v1/asset/{room_id}", json={"name": "Room B", "type": "room", "location": "Main DC", "priority": "P2"}
    )
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"id": room_id}
    assert notifier.operations[-1] == "update"

    body = (await async_client.get(f"/api/v1/asset/{room_id}")).json()
    assert (body["name"], body["priority"]) == ("Room B", "P2")
    ext = {e["key"]: e["value"] for e in body["ext"]}
    assert ext["description"] == "first"
    assert "update_ts" in ext

    resp = await async_client.put(
        f"/api/v1/asset/{room_id}", json={"name": "Room B", "type": "room", "location": "Main DC", "status": "nonactive"}
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Inactivation of this asset is not allowed"

    resp = await async_client.put("/api/v1/asset/room-999", json={"name": "Ghost", "type": "room"})
    assert resp.status_code == 404


@pytest.mark.anyio
async def test_delete_asset(async_client, notifier):
    dc_id = await _create(async_client, name="Main DC", type="datacenter")
    room_id = await _create(async_client, name="Room A", type="room", location="Main DC")

    resp = await async_client.delete(f"/api/v1/asset/{dc_id}")
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Asset is in use, remove children/power source links first."

    resp = await async_client.delete(f"/api/v1/asset/{room_id}")
    assert resp.status_code == 200, resp.text
    assert resp.json() == {"asset": room_id, "status": "OK", "reason": None}
    assert notifier.operations[-1] == "delete"

    resp = await async_client.delete(f"/api/v1/asset/{dc_id}")
    assert resp.status_code == 409
    assert resp.json()["detail"] == "will not allow last datacenter to be deleted"

    resp = await async_client.delete(f"/api/v1/asset/{room_id}")
    assert resp.status_code == 404


@pytest.mark.anyio
async def test_delete_last_datacenter_with_override(async_client, test_settings):
    test_settings.OVERRIDE_LAST_DC_DELETION_CHECK = True
    dc_id = await _create(async_client, name="Main DC", type="datacenter")

    resp = await async_client.delete(f"/api/v1/asset/{dc_id}")
    assert resp.status_code == 200


@pytest.mark.anyio
async def test_delete_batch(async_client):
    await _create(async_client, name="Main DC", type="datacenter")
    dc_id = await _create(async_client, name="Backup DC", type="datacenter")
    room_id = await _create(async_client, name="Room B", type="room", location="Backup DC")

    resp = await async_client.delete("/api/v1/assets", params={"ids": f"{dc_id},{room_id},ghost-1"})
    assert resp.status_code == 200, resp.text
    assert resp.json() == [
        {"asset": dc_id, "status": "OK", "reason": None},
        {"asset": room_id, "status": "OK", "reason": None},
        {"asset": "ghost-1", "status": "ERROR", "reason": "Element 'ghost-1' not found."},
    ]

    resp = await async_client.delete("/api/v1/assets", params={"ids": "ghost-1"})
    assert resp.status_code == 409
    assert resp.json()[0]["status"] == "ERROR"


@pytest.mark.anyio
async def test_import_upload(async_client, notifier):
    content = (
        "name,type,sub_type,location,installation_date\n"
        "Main DC,datacenter,,,\n"
        "UPS 1,device,ups,Main DC,not-a-date\n"
        "UPS 2,device,ups,Main DC,2024-01-01\n"
    ).encode("utf-8")

    resp = await async_client.post(
        "/api/v1/asset/import", files={"assets": ("assets.csv", content, "text/csv")}
    )
    assert resp.status_code == 200, resp.text
    report = resp.json()
    assert report["imported_lines"] == 2
    assert len(report["errors"]) == 1
    assert report["errors"][0][0] == 2
    assert "date format is not valid" in report["errors"][0][1]
    assert notifier.operations == ["create", "create"]


@pytest.mark.anyio
async def test_import_size_limit(async_client, test_settings):
    test_settings.MAX_IMPORT_SIZE = 16
    content = b"name,type\nMain DC,datacenter\n"

    resp = await async_client.post(
        "/api/v1/asset/import", files={"assets": ("assets.csv", content, "text/csv")}
    )
    assert resp.status_code == 413


@pytest.mark.anyio
async def test_import_rejects_empty_file(async_client):
    resp = await async_client.post(
        "/api/v1/asset/import", files={"assets": ("assets.csv", b"\n", "text/csv")}
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Import file is empty"


@pytest.mark.anyio
async def test_export_download(async_client):
    dc_id = await _create(async_client, name="Main DC", type="datacenter")
    room_id = await _create(async_client, name="Room A", type="room", location="Main DC")

    resp = await async_client.get("/api/v1/asset/export")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "asset_export_all_" in resp.headers["content-disposition"]
    assert resp.content.startswith(b"\xef\xbb\xbf")
    lines = resp.content.decode("utf-8-sig").splitlines()
    assert lines[0].startswith("name,type,sub_type,location")
    assert len(lines) == 3

    resp = await async_client.get("/api/v1/asset/export", params={"dc": dc_id})
    assert resp.status_code == 200
    assert f"asset_export_{dc_id}_" in resp.headers["content-disposition"]

    resp = await async_client.get("/api/v1/asset/export", params={"dc": room_id})
    assert resp.status_code == 400
