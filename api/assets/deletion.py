# api/assets/deletion.py
"""
Deletion Orchestrator.

A delete goes through: reserved-name and sensor checks, dependency
resolution, then the deletion policy of the element's type, which runs its
cleanup steps in one transaction.
"""
import logging
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field
from typing import TypeVar

from core.asset_types import RC0_NAME, AssetType
from core.collaborators import AssetActivator
from core.errors import AssetError, BadRequestError, ConflictError
from db import RowStore
from . import db_manager
from .models import AssetElement
from .resolver import resolve

logger = logging.getLogger(__name__)

T = TypeVar("T")

IN_USE = "can't delete the asset because it has at least one child or asset is linked"
LOGICAL_ASSET_KEY = "logical_asset"


@dataclass
class DeletionContext:
    activator: AssetActivator
    allow_last_datacenter: bool = False


async def _step(description: str, op: Awaitable[T]) -> T:
    try:
        return await op
    except AssetError as exc:
        logger.error("delete failed during %s: %s", description, exc.message)
        raise exc.annotate(f"error occured during {description}") from exc


# ---------- Policies ----------

class DeletionPolicy:
    async def delete(self, store: RowStore, element: AssetElement, ctx: DeletionContext) -> None:
        raise NotImplementedError


class ContainerDeletion(DeletionPolicy):
    """Datacenter, room, row and rack."""

    async def delete(self, store: RowStore, element: AssetElement, ctx: DeletionContext) -> None:
        if element.type_id == AssetType.DATACENTER and not ctx.allow_last_datacenter:
            if await db_manager.count_datacenters_excluding(store, element.id) == 0:
                raise ConflictError("will not allow last datacenter to be deleted", key=element.name)

        async with store.transaction():
            await _step(
                "removing from groups",
                db_manager.delete_asset_element_from_asset_groups(store, element.id),
            )
            monitor_id = await _step(
                "converting monitor relation",
                db_manager.convert_asset_to_monitor(store, element.id),
            )
            if monitor_id is not None:
                logger.debug("%s was monitored as device %s", element.name, monitor_id)
            await _step(
                "removing ma relation",
                db_manager.delete_monitor_asset_relation_by_a(store, element.id),
            )
            await _step("removing element", db_manager.delete_asset_element(store, element.id))


class GroupDeletion(DeletionPolicy):
    async def delete(self, store: RowStore, element: AssetElement, ctx: DeletionContext) -> None:
        async with store.transaction():
            await _step("removing group links", db_manager.delete_asset_group_links(store, element.id))
            await _step("removing element", db_manager.delete_asset_element(store, element.id))


class DeviceDeletion(DeletionPolicy):
    async def delete(self, store: RowStore, element: AssetElement, ctx: DeletionContext) -> None:
        if element.status == "active":
            snapshot = await db_manager.get_json_asset(store, element.id)
            await ctx.activator.deactivate(snapshot)

        async with store.transaction():
            await _step(
                "removing from groups",
                db_manager.delete_asset_element_from_asset_groups(store, element.id),
            )
            await _step("removing links", db_manager.delete_asset_links_to(store, element.id))
            await _step(
                "removing ma relation",
                db_manager.delete_monitor_asset_relation_by_a(store, element.id),
            )
            await _step("removing element", db_manager.delete_asset_element(store, element.id))


_CONTAINER = ContainerDeletion()

POLICIES: dict[AssetType, DeletionPolicy] = {
    AssetType.DATACENTER: _CONTAINER,
    AssetType.ROOM: _CONTAINER,
    AssetType.ROW: _CONTAINER,
    AssetType.RACK: _CONTAINER,
    AssetType.GROUP: GroupDeletion(),
    AssetType.DEVICE: DeviceDeletion(),
}


def policy_for(type_id: int) -> DeletionPolicy:
    try:
        return POLICIES[AssetType(type_id)]
    except ValueError as exc:
        raise BadRequestError(f"unknown asset type {type_id}") from exc


# ---------- Entry points ----------

def _check_reserved(element: AssetElement) -> None:
    if element.name == RC0_NAME:
        raise ConflictError("Prevented deleting RC-0", key=element.name)


async def delete_asset(store: RowStore, element: AssetElement, ctx: DeletionContext) -> AssetElement:
    """
    Delete one element whose dependencies have already been checked.

    Raises:
        ConflictError: For the reserved controller, a sensor-referenced asset,
            the last datacenter, or a failed cleanup step
        ActivationError: If an active device could not be deactivated
    """
    _check_reserved(element)
    if await db_manager.count_keytag(store, LOGICAL_ASSET_KEY, element.name) > 0:
        raise ConflictError(
            "can't delete the asset because a logical_asset (sensor) refers to it",
            key=element.name,
        )

    policy = policy_for(element.type_id)
    await policy.delete(store, element, ctx)
    logger.info("asset %s (id %s) deleted", element.name, element.id)
    return element


async def delete_item(store: RowStore, element_id: int, ctx: DeletionContext) -> AssetElement:
    """
    Delete a single element if nothing depends on it.

    Raises:
        NotFoundError: If the element does not exist
        ConflictError: If children or powered devices remain, or a rule blocks it
    """
    element = await db_manager.select_asset_element_by_id(store, element_id)
    _check_reserved(element)
    deps = await resolve(store, element_id, {element_id})
    if deps.blocked:
        raise ConflictError(IN_USE, key=element.name)
    return await delete_asset(store, element, ctx)


@dataclass(eq=False)
class _Node:
    element: AssetElement
    children: list["_Node"] = field(default_factory=list)
    links: list["_Node"] = field(default_factory=list)
    deleted: bool = False
    error: AssetError | None = None


async def _delete_tree(store: RowStore, root: _Node, ctx: DeletionContext) -> None:
    """Post-order: powered devices, then children, then the node itself."""
    stack: list[tuple[_Node, bool]] = [(root, False)]
    visiting: set[int] = set()
    while stack:
        node, expanded = stack.pop()
        if node.deleted:
            continue
        if node.error is not None:
            raise node.error
        if not expanded:
            visiting.add(node.element.id)
            stack.append((node, True))
            for dep in reversed(node.links + node.children):
                if not dep.deleted and dep.element.id not in visiting:
                    stack.append((dep, False))
            continue
        try:
            await delete_asset(store, node.element, ctx)
        except AssetError as exc:
            node.error = exc
            raise
        node.deleted = True


async def delete_items(
    store: RowStore, ids: Mapping[int, str], ctx: DeletionContext
) -> dict[str, AssetElement | AssetError]:
    """
    Delete a batch of elements, reporting per name.

    Dependencies inside the batch do not block; the batch is deleted as a
    forest in post-order, each element in its own transaction.
    """
    result: dict[str, AssetElement | AssetError] = {}
    nodes: dict[int, _Node] = {}

    for element_id, name in ids.items():
        try:
            element = await db_manager.select_asset_element_by_id(store, element_id)
            _check_reserved(element)
            deps = await resolve(store, element_id, ids)
        except AssetError as exc:
            result[name] = exc
            continue
        if deps.blocked:
            logger.info("asset %s not deleted, dependencies %s", name, deps)
            result[name] = ConflictError(IN_USE, key=name)
        else:
            nodes[element_id] = _Node(element)

    for element_id, node in nodes.items():
        try:
            for child_id in await db_manager.select_assets_by_parent(store, element_id):
                if child_id in nodes:
                    node.children.append(nodes[child_id])
            for dest_id in await db_manager.select_asset_device_links_src(store, element_id):
                if dest_id in nodes:
                    node.links.append(nodes[dest_id])
        except AssetError as exc:
            node.error = exc

    for element_id, node in nodes.items():
        name = ids[element_id]
        try:
            await _delete_tree(store, node, ctx)
        except AssetError as exc:
            result[name] = exc
        else:
            result[name] = node.element
    return result
