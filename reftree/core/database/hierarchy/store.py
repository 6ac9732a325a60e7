"""Storage collaborator contract for materialized-path trees.

The tree algorithms never talk to a database directly. Everything they need
from persistence is expressed by the ``TreeStore`` protocol below: filtered
reads sorted by path, counts, targeted path writes, a bulk component bump for
insertion shifts, and removal.

Two implementations ship with the package:
    - MemoryTreeStore: in-process store (reftree.core.database.hierarchy.memory)
    - SQLAlchemyTreeStore: async SQLAlchemy store (reftree.core.database.repository)

The store is single-writer per scope. Concurrent mutations of one scope must
be serialized by the caller (one transaction or lock per scope); the tree
algorithms read a snapshot and write corrections without isolation of their own.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from reftree.core.database.hierarchy.path import NodePath
    from reftree.core.database.hierarchy.query import PathFilter


@dataclass(slots=True, frozen=True)
class TreeScope:
    """Partition of a collection into an independent forest.

    Attributes:
        key: Name of the record attribute holding the scope value, or None
            when the whole collection is a single forest
        value: Scope value shared by every record of the forest

    Example:
        >>> TreeScope("account_id", 7)
        TreeScope(key='account_id', value=7)
        >>> TreeScope.unscoped().is_scoped
        False
    """

    key: str | None = None
    value: Any = None

    @property
    def is_scoped(self) -> bool:
        """Whether this scope filters on a key."""
        return self.key is not None

    @classmethod
    def unscoped(cls) -> TreeScope:
        """Scope covering the whole collection."""
        return cls(None, None)

    @classmethod
    def of(cls, record: Any, key: str | None) -> TreeScope:
        """Scope of ``record`` under the scope attribute ``key``."""
        if key is None:
            return cls.unscoped()
        return cls(key, getattr(record, key))

    def describe(self) -> str:
        """Short human-readable form for log fields."""
        return f"{self.key}={self.value!r}" if self.key else "*"


class NodeState(StrEnum):
    """Lifecycle state of a record with respect to its tree.

    UNASSIGNED records have not been placed yet; PLACED records hold a
    committed path (relocation keeps them PLACED); REMOVED records have been
    deleted and their slot reclaimed.
    """

    UNASSIGNED = "unassigned"
    PLACED = "placed"
    REMOVED = "removed"


@runtime_checkable
class TreeRecord(Protocol):
    """Attributes every tree record exposes to the algorithms."""

    id: Any
    path: NodePath | None
    depth: int | None


class TreeStore(Protocol):
    """Async storage collaborator used by navigator, renumber and mutations.

    Every read that returns several records returns them sorted ascending
    by path. Writes are targeted field updates on records previously
    returned by the store (or added to it).
    """

    scope_key: str | None

    def scope_for(self, record: Any) -> TreeScope:
        """Scope the record belongs to."""
        ...

    def state_of(self, record: Any) -> NodeState:
        """Lifecycle state of the record in this store."""
        ...

    async def find(self, flt: PathFilter) -> Sequence[Any]:
        """Records matching the filter, sorted by path."""
        ...

    async def find_one(self, flt: PathFilter) -> Any | None:
        """First record (by path) matching the filter, or None."""
        ...

    async def find_last(self, flt: PathFilter) -> Any | None:
        """Last record (by path) matching the filter, or None."""
        ...

    async def count(self, flt: PathFilter) -> int:
        """Number of records matching the filter."""
        ...

    async def add(self, record: Any) -> Any:
        """Persist a new record (path already assigned)."""
        ...

    async def write_path(self, record: Any, path: NodePath) -> None:
        """Update the record's path; depth is re-derived from it."""
        ...

    async def write_path_and_depth(self, record: Any, path: NodePath, depth: int) -> None:
        """Update path and depth; rejects a depth that disagrees with the path."""
        ...

    async def increment_component(self, flt: PathFilter, level: int, delta: int) -> int:
        """Add ``delta`` to path component ``level`` of every matching record.

        Returns:
            Number of records updated
        """
        ...

    async def remove(self, record: Any) -> None:
        """Delete the record; raises NotFoundError if the store lacks it."""
        ...


__all__ = [
    "NodeState",
    "TreeRecord",
    "TreeScope",
    "TreeStore",
]
