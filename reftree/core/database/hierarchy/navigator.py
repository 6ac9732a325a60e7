"""Read-only tree traversal.

Every query here is built with ``path_query`` and answered by the store,
sorted ascending by path. Each operation resolves the record's scope first
and threads it explicitly into the filter, so results never cross forests.

The relationship predicates at the bottom of the module are pure
comparisons over path and depth and never touch the store.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from reftree.core.database.hierarchy.path import NodePath
from reftree.core.database.hierarchy.query import DepthOp, path_query

if TYPE_CHECKING:
    from collections.abc import Sequence

    from reftree.core.database.hierarchy.store import TreeScope, TreeStore


class TreeNavigator:
    """Tree navigation over a TreeStore.

    Example:
        >>> nav = TreeNavigator(store)
        >>> parent = await nav.parent(node)
        >>> children = await nav.children(parent)
        >>> node in children
        True
    """

    __slots__ = ("store",)

    def __init__(self, store: TreeStore) -> None:
        """Initialize navigator.

        Args:
            store: Storage collaborator holding the forest
        """
        self.store = store

    def scope_of(self, record: Any) -> TreeScope:
        """Scope the record's queries are confined to."""
        return self.store.scope_for(record)

    # ------------------------------------------------------------------
    # Single records
    # ------------------------------------------------------------------

    async def parent(self, record: Any) -> Any | None:
        """Record one level up, or None for roots (and missing parents)."""
        if record.depth <= 1:
            return None
        flt = path_query(
            record.path.prefix(record.depth - 1),
            scope=self.scope_of(record),
            depth=record.depth - 1,
        )
        return await self.store.find_one(flt)

    async def root(self, record: Any) -> Any | None:
        """Depth-1 record sharing this record's first component."""
        flt = path_query([record.path.root], scope=self.scope_of(record), depth=1)
        return await self.store.find_one(flt)

    async def last_root(self, scope: TreeScope) -> Any | None:
        """Root with the highest path in the scope."""
        return await self.store.find_last(path_query(scope=scope, depth=1))

    async def last_child(self, record: Any) -> Any | None:
        """Child with the highest path, or None for leaves."""
        flt = path_query(record.path, scope=self.scope_of(record), depth=record.depth + 1)
        return await self.store.find_last(flt)

    # ------------------------------------------------------------------
    # Record lists
    # ------------------------------------------------------------------

    async def roots(self, scope: TreeScope) -> Sequence[Any]:
        """All depth-1 records of the scope."""
        return await self.store.find(path_query(scope=scope, depth=1))

    async def ancestors(self, record: Any) -> Sequence[Any]:
        """Shallower records under the same root, in path order.

        This is every record of the root's tree with a smaller depth, not
        only the records on the record's own branch. Callers wanting the
        strict chain filter with ``is_ancestor_of``. Depths without a record
        are simply absent. Roots have no ancestors.
        """
        if record.depth <= 1:
            return []
        flt = path_query(
            [record.path.root],
            scope=self.scope_of(record),
            depth=record.depth,
            depth_op=DepthOp.LT,
        )
        return await self.store.find(flt)

    async def siblings(self, record: Any) -> Sequence[Any]:
        """Records sharing the parent position, excluding the record."""
        flt = path_query(
            record.path.parent_path,
            scope=self.scope_of(record),
            depth=record.depth,
            exclude_id=record.id,
        )
        return await self.store.find(flt)

    async def self_and_siblings(self, record: Any) -> Sequence[Any]:
        """Records sharing the parent position, including the record."""
        flt = path_query(record.path.parent_path, scope=self.scope_of(record), depth=record.depth)
        return await self.store.find(flt)

    async def previous_siblings(self, record: Any) -> Sequence[Any]:
        """Siblings ranked before the record."""
        flt = path_query(
            record.path.parent_path,
            scope=self.scope_of(record),
            depth=record.depth,
            exclude_id=record.id,
            component_lt=record.path.last,
        )
        return await self.store.find(flt)

    async def next_siblings(self, record: Any) -> Sequence[Any]:
        """Siblings ranked after the record."""
        flt = path_query(
            record.path.parent_path,
            scope=self.scope_of(record),
            depth=record.depth,
            exclude_id=record.id,
            component_gt=record.path.last,
        )
        return await self.store.find(flt)

    async def children(self, record: Any) -> Sequence[Any]:
        """Records exactly one level below the record."""
        flt = path_query(record.path, scope=self.scope_of(record), depth=record.depth + 1)
        return await self.store.find(flt)

    async def descendants(self, record: Any) -> Sequence[Any]:
        """All records below the record, in pre-order."""
        flt = path_query(
            record.path,
            scope=self.scope_of(record),
            depth=record.depth,
            depth_op=DepthOp.GT,
        )
        return await self.store.find(flt)

    async def self_and_descendants(self, record: Any) -> list[Any]:
        """The record followed by all of its descendants."""
        return [record, *await self.descendants(record)]

    # ------------------------------------------------------------------
    # Counts and derived paths
    # ------------------------------------------------------------------

    async def has_previous_sibling(self, record: Any) -> bool:
        """Whether any sibling ranks before the record."""
        flt = path_query(
            record.path.parent_path,
            scope=self.scope_of(record),
            depth=record.depth,
            exclude_id=record.id,
            component_lt=record.path.last,
        )
        return await self.store.count(flt) > 0

    async def sibling_count(self, path: NodePath, scope: TreeScope) -> int:
        """Number of records at depth ``len(path)`` under ``path``'s parent."""
        return await self.store.count(path_query(path.parent_path, scope=scope, depth=path.depth))

    async def descendant_count(self, record: Any) -> int:
        """Number of records below the record."""
        flt = path_query(
            record.path,
            scope=self.scope_of(record),
            depth=record.depth,
            depth_op=DepthOp.GT,
        )
        return await self.store.count(flt)

    async def next_root_path(self, scope: TreeScope) -> NodePath:
        """Path appending a new root after the current last root."""
        last = await self.last_root(scope)
        return NodePath([last.path.root + 1]) if last is not None else NodePath([1])

    async def next_child_path(self, parent: Any) -> NodePath:
        """Path appending a new child after the parent's current last child.

        Falls back to rank 1 when the parent has no children.
        """
        last = await self.last_child(parent)
        return parent.path.child(last.path.last + 1 if last is not None else 1)


# ============================================================================
# Relationship predicates (no queries)
# ============================================================================


def _same(a: Any, b: Any) -> bool:
    return a is b or (a.id is not None and a.id == b.id)


def is_root(record: Any) -> bool:
    """Whether the record sits at depth 1."""
    return record.depth == 1


def is_ancestor_of(a: Any, b: Any) -> bool:
    """True iff ``b`` is deeper than ``a`` and ``b``'s path starts with ``a``'s."""
    if b.depth <= a.depth:
        return False
    return b.path.prefix(a.depth) == a.path


def is_or_is_ancestor_of(a: Any, b: Any) -> bool:
    """``a`` is ``b`` or an ancestor of it."""
    return _same(a, b) or is_ancestor_of(a, b)


def is_descendant_of(a: Any, b: Any) -> bool:
    """True iff ``a`` is deeper than ``b`` and ``a``'s path starts with ``b``'s."""
    return is_ancestor_of(b, a)


def is_or_is_descendant_of(a: Any, b: Any) -> bool:
    """``a`` is ``b`` or a descendant of it."""
    return _same(a, b) or is_descendant_of(a, b)


def is_sibling_of(a: Any, b: Any) -> bool:
    """Equal depth and equal parent path."""
    if a.depth != b.depth:
        return False
    return a.path.parent_path == b.path.parent_path


def is_or_is_sibling_of(a: Any, b: Any) -> bool:
    """``a`` is ``b`` or a sibling of it."""
    return _same(a, b) or is_sibling_of(a, b)


__all__ = [
    "TreeNavigator",
    "is_ancestor_of",
    "is_descendant_of",
    "is_or_is_ancestor_of",
    "is_or_is_descendant_of",
    "is_or_is_sibling_of",
    "is_root",
    "is_sibling_of",
]
