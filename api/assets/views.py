# api/assets/views.py
"""
Asset inventory endpoints.
"""
import logging

from fastapi import APIRouter, File, HTTPException, Query, Response, UploadFile, status

from core.collaborators import AssetNotifier, sync_credential_mappings
from core.deps import Activator, AppSettings, CredentialMappings, Notifier, Store
from core.errors import AssetError, BadRequestError, ConflictError, NotificationError
from core.asset_types import subtype_to_subtypeid, subtypeid_to_subtype, type_to_typeid, typeid_to_type
from db import RowStore
from . import db_manager
from .deletion import IN_USE, DeletionContext, delete_item, delete_items
from .exporter import AssetExporter, export_filename
from .importer import AssetImporter
from .models import (
    AssetCreated,
    AssetDetail,
    AssetElement,
    AssetPayload,
    ContainedAssetRead,
    DeleteStatus,
    ImportReport,
    ShortAsset,
)
from .rows import CsvMap
from .sanitize import check_element_identifier

logger = logging.getLogger(__name__)
audit = logging.getLogger("audit")

router = APIRouter(tags=["assets"])

IN_USE_DETAIL = "Asset is in use, remove children/power source links first."


def _http_error(exc: AssetError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


async def _element_of(store: RowStore, asset_id: str) -> AssetElement:
    """Element by internal name, or by numeric id when the path is all digits."""
    asset_id = check_element_identifier("id", asset_id)
    if asset_id.isascii() and asset_id.isdigit():
        return await db_manager.select_asset_element_by_id(store, int(asset_id))
    return await db_manager.select_asset_element_by_name(store, asset_id)


async def _snapshot(store: RowStore, element: AssetElement, operation: str) -> dict:
    if operation == "delete":
        return element.model_dump()
    return (await db_manager.get_item(store, element.id)).model_dump()


async def _notify(notifier: AssetNotifier, store: RowStore, element: AssetElement, operation: str) -> None:
    """Send a change notification; the change itself is already committed."""
    try:
        await notifier.notify(await _snapshot(store, element, operation), operation)
    except NotificationError as exc:
        raise _http_error(exc) from exc


def _split(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


# ---------- Reads ----------

@router.get(
    "/asset/export",
    summary="Export assets as CSV",
    response_class=Response,
)
async def export_assets_endpoint(
    store: Store,
    dc: str | None = Query(None, description="Internal name of a datacenter to export"),
) -> Response:
    """
    Download the inventory (or one datacenter) in the import layout.
    """
    try:
        text = await AssetExporter(store).export(dc)
    except AssetError as exc:
        raise _http_error(exc) from exc

    audit.info("assets exported (dc=%s)", dc or "all")
    return Response(
        content="\ufeff" + text,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(dc)}"'},
    )


@router.get(
    "/asset/{asset_id}",
    response_model=AssetDetail,
    summary="Get one asset",
)
async def get_asset_endpoint(asset_id: str, store: Store) -> AssetDetail:
    try:
        element = await _element_of(store, asset_id)
        return await db_manager.get_item(store, element.id)
    except AssetError as exc:
        raise _http_error(exc) from exc


@router.get(
    "/assets",
    response_model=dict[str, list[ShortAsset]],
    summary="List assets of one type",
)
async def list_assets_endpoint(
    store: Store,
    type: str = Query(..., description="datacenter, room, row, rack, group or device (plural accepted)"),
    subtype: str = Query("", description="Device subtype filter"),
) -> dict[str, list[ShortAsset]]:
    """
    Short listing of every asset of ``type``, keyed by the plural type name.
    """
    try:
        items = await db_manager.get_items(store, type, subtype)
        listing = []
        for element_id in items:
            name, ext_name = await db_manager.id_to_name_ext_name(store, element_id)
            listing.append(ShortAsset(id=name, name=ext_name))
    except AssetError as exc:
        raise _http_error(exc) from exc
    return {f"{typeid_to_type(type_to_typeid(type))}s": listing}


@router.get(
    "/assets/in/{container}",
    response_model=list[ContainedAssetRead],
    summary="List assets inside a container",
)
async def list_contained_assets_endpoint(
    container: str,
    store: Store,
    types: str = Query("", description="Comma separated type names"),
    subtypes: str = Query("", description="Comma separated device subtype names"),
    without: str = Query("", description="'location', 'powerchain' or an ext keytag"),
    asset_status: str = Query("", alias="status"),
) -> list[ContainedAssetRead]:
    try:
        parent = await _element_of(store, container)
        type_ids = []
        for name in _split(types):
            type_id = type_to_typeid(name)
            if type_id == 0:
                raise BadRequestError(f"types: '{name}' is not a valid type", key="types")
            type_ids.append(type_id)
        subtype_ids = []
        for name in _split(subtypes):
            subtype_id = subtype_to_subtypeid(name)
            if subtype_id == 0:
                raise BadRequestError(f"subtypes: '{name}' is not a valid subtype", key="subtypes")
            subtype_ids.append(subtype_id)
        if asset_status and asset_status not in ("active", "nonactive"):
            raise BadRequestError(f"status: '{asset_status}' is not allowed", key="status")

        contained = await db_manager.select_assets_by_container(
            store, parent.id, type_ids, subtype_ids, without, asset_status
        )
        result = []
        for asset in contained:
            _, ext_name = await db_manager.id_to_name_ext_name(store, asset.id)
            result.append(
                ContainedAssetRead(
                    id=asset.name,
                    name=ext_name,
                    type=typeid_to_type(asset.type_id),
                    sub_type=subtypeid_to_subtype(asset.subtype_id),
                    status=asset.status,
                )
            )
    except AssetError as exc:
        raise _http_error(exc) from exc
    return result


# ---------- Writes ----------

@router.post(
    "/asset",
    response_model=AssetCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Create an asset",
)
async def create_asset_endpoint(
    payload: AssetPayload,
    store: Store,
    notifier: Notifier,
    activator: Activator,
) -> AssetCreated:
    """
    Create one asset from its JSON description.
    """
    if payload.id is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="key 'id' is forbidden to be used",
        )
    if not payload.type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Parameter 'type' is required",
        )

    try:
        cm = CsvMap.from_json(payload.model_dump(exclude_none=True), create_mode="web")
    except AssetError as exc:
        raise _http_error(exc) from exc
    result = (await AssetImporter(store, cm, activator).process())[1]
    if isinstance(result, AssetError):
        raise _http_error(result)

    audit.info("asset %s created", result.name)
    await _notify(notifier, store, result, "create")
    return AssetCreated(id=result.name)


@router.put(
    "/asset/{asset_id}",
    response_model=AssetCreated,
    summary="Update an asset",
)
async def update_asset_endpoint(
    asset_id: str,
    payload: AssetPayload,
    store: Store,
    notifier: Notifier,
    activator: Activator,
    mapper: CredentialMappings,
) -> AssetCreated:
    """
    Replace the description of an existing asset.

    User attributes missing from the payload are kept.
    """
    try:
        element = await _element_of(store, asset_id)
        data = payload.model_dump(exclude_none=True)
        data["id"] = element.name
        cm = CsvMap.from_json(data, update_user="web")
    except AssetError as exc:
        raise _http_error(exc) from exc
    result = (await AssetImporter(store, cm, activator).process(update=True))[1]
    if isinstance(result, AssetError):
        raise _http_error(result)

    audit.info("asset %s updated", result.name)
    await _notify(notifier, store, result, "update")

    try:
        ext = await db_manager.select_ext_attributes(store, result.id)
    except AssetError as exc:
        logger.error("credential mapping skipped for %s: %s", result.name, exc.message)
    else:
        await sync_credential_mappings(mapper, result.name, {key: attr.value for key, attr in ext.items()})
    return AssetCreated(id=result.name)


@router.delete(
    "/asset/{asset_id}",
    response_model=DeleteStatus,
    summary="Delete an asset",
)
async def delete_asset_endpoint(
    asset_id: str,
    store: Store,
    cfg: AppSettings,
    notifier: Notifier,
    activator: Activator,
) -> DeleteStatus:
    """
    Delete an asset that has no children and powers no device.
    """
    ctx = DeletionContext(activator, allow_last_datacenter=cfg.OVERRIDE_LAST_DC_DELETION_CHECK)
    try:
        element = await _element_of(store, asset_id)
        deleted = await delete_item(store, element.id, ctx)
    except ConflictError as exc:
        detail = IN_USE_DETAIL if exc.message == IN_USE else exc.message
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail) from exc
    except AssetError as exc:
        raise _http_error(exc) from exc

    audit.info("asset %s deleted", deleted.name)
    await _notify(notifier, store, deleted, "delete")
    return DeleteStatus(asset=deleted.name, status="OK")


@router.delete(
    "/assets",
    response_model=list[DeleteStatus],
    summary="Delete several assets",
)
async def delete_assets_endpoint(
    response: Response,
    store: Store,
    cfg: AppSettings,
    notifier: Notifier,
    activator: Activator,
    ids: str = Query(..., description="Comma separated internal names"),
) -> list[DeleteStatus]:
    """
    Delete a batch of assets.

    Dependencies between members of the batch do not block each other.
    Responds 409 when nothing could be deleted.
    """
    names = _split(ids)
    if not names:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Parameter 'ids' is required",
        )

    report: dict[str, DeleteStatus] = {}
    to_delete: dict[int, str] = {}
    for name in names:
        try:
            element = await _element_of(store, name)
        except AssetError as exc:
            report[name] = DeleteStatus(asset=name, status="ERROR", reason=exc.message)
            continue
        if element.id not in to_delete:
            to_delete[element.id] = name

    ctx = DeletionContext(activator, allow_last_datacenter=cfg.OVERRIDE_LAST_DC_DELETION_CHECK)
    for name, outcome in (await delete_items(store, to_delete, ctx)).items():
        if isinstance(outcome, AssetError):
            reason = IN_USE_DETAIL if outcome.message == IN_USE else outcome.message
            report[name] = DeleteStatus(asset=name, status="ERROR", reason=reason)
            continue
        report[name] = DeleteStatus(asset=name, status="OK")
        audit.info("asset %s deleted", outcome.name)
        try:
            await notifier.notify(outcome.model_dump(), "delete")
        except NotificationError as exc:
            logger.error("delete notification for %s failed: %s", outcome.name, exc.message)

    result = [report[name] for name in names if name in report]
    if not any(item.status == "OK" for item in result):
        response.status_code = status.HTTP_409_CONFLICT
    return result


@router.post(
    "/asset/import",
    response_model=ImportReport,
    summary="Import assets from CSV",
)
async def import_assets_endpoint(
    store: Store,
    cfg: AppSettings,
    notifier: Notifier,
    activator: Activator,
    assets: UploadFile = File(..., description="CSV file, comma, semicolon or tab separated"),
) -> ImportReport:
    """
    Create or update assets from an uploaded CSV file.

    Every line is imported on its own; failed lines are listed in the
    report with their 1-based line number.
    """
    content = await assets.read(cfg.MAX_IMPORT_SIZE + 1)
    if len(content) > cfg.MAX_IMPORT_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File is too big, maximum size is {cfg.MAX_IMPORT_SIZE} bytes",
        )
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File is not valid UTF-8",
        ) from exc

    try:
        cm = CsvMap.from_csv(text, create_mode="import")
    except AssetError as exc:
        raise _http_error(exc) from exc
    items = await AssetImporter(store, cm, activator).process()

    report = ImportReport(imported_lines=0)
    for row, outcome in sorted(items.items()):
        if isinstance(outcome, AssetError):
            report.errors.append((row, outcome.message))
            continue
        report.imported_lines += 1
        try:
            await notifier.notify(await _snapshot(store, outcome, "create"), "create")
        except NotificationError as exc:
            logger.error("import notification for %s failed: %s", outcome.name, exc.message)

    audit.info("import of %s: %s lines imported, %s failed", assets.filename, report.imported_lines, len(report.errors))
    return report
