# api/assets/resolver.py
"""
Dependency Resolver: what still hangs off an element slated for deletion.
"""
from collections.abc import Container
from dataclasses import dataclass, field

from db import RowStore
from . import db_manager


@dataclass
class Dependencies:
    children: list[int] = field(default_factory=list)
    links: list[int] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return bool(self.children or self.links)


async def collect_children(store: RowStore, element_id: int, excluded: Container[int]) -> list[int]:
    """
    Transitive children of an element that are not in ``excluded``.

    Excluded children are still descended into: a child deleted in the same
    batch may have grandchildren that are not.
    """
    children: list[int] = []
    visited = {element_id}
    stack = [element_id]
    while stack:
        parent_id = stack.pop()
        for child_id in await db_manager.select_assets_by_parent(store, parent_id):
            if child_id in visited:
                continue
            visited.add(child_id)
            if child_id not in excluded:
                children.append(child_id)
            stack.append(child_id)
    return children


async def collect_links(store: RowStore, element_id: int, excluded: Container[int]) -> list[int]:
    """Devices powered by the element that are not in ``excluded``."""
    fed = await db_manager.select_asset_device_links_src(store, element_id)
    return [dest_id for dest_id in fed if dest_id not in excluded]


async def resolve(store: RowStore, element_id: int, excluded: Container[int]) -> Dependencies:
    return Dependencies(
        children=await collect_children(store, element_id, excluded),
        links=await collect_links(store, element_id, excluded),
    )
