"""In-process tree store.

Keeps records in a dict keyed by id and answers ``PathFilter`` queries by
evaluating them in Python. Useful for tests, for hosts that keep a small
forest in memory, and as the reference behaviour for other stores.

Example:
    >>> store = MemoryTreeStore.from_paths([[1], [1, 1], [2]], scope_key="account_id", account_id=1)
    >>> len(store)
    3
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from reftree.core.database.exceptions import InvalidPathError, NotFoundError
from reftree.core.database.hierarchy.path import NodePath
from reftree.core.database.hierarchy.store import NodeState, TreeScope
from reftree.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence

    from reftree.core.database.hierarchy.query import PathFilter
    from reftree.core.settings.tree import TreeSettings


class TreeNode:
    """Plain tree record for in-memory forests.

    Assigning ``path`` re-derives ``depth`` in the same statement, so the
    two never disagree once a path is set. Extra keyword arguments become
    attributes (e.g. the scope field or a payload).

    Example:
        >>> node = TreeNode([1, 2], account_id=1, name="intro")
        >>> node.depth
        2
        >>> node.path = [3]
        >>> node.depth
        1
    """

    def __init__(self, path: Iterable[int] | NodePath | None = None, *, id: Any = None, **fields: Any) -> None:  # noqa: A002
        self.id = id
        self._path: NodePath | None = None
        self.depth: int | None = None
        if path is not None:
            self.path = path
        for key, value in fields.items():
            setattr(self, key, value)

    @property
    def path(self) -> NodePath | None:
        return self._path

    @path.setter
    def path(self, value: Iterable[int] | NodePath | None) -> None:
        if value is None:
            self._path, self.depth = None, None
            return
        path = value if isinstance(value, NodePath) else NodePath(value)
        self._path, self.depth = path, path.depth

    def __repr__(self) -> str:
        path = self._path.format() if self._path is not None else None
        return f"TreeNode(id={self.id!r}, path={path!r})"


class MemoryTreeStore:
    """Dict-backed implementation of the TreeStore protocol.

    Records are stored by identity: objects returned from ``find`` are the
    same objects that were added, and path writes update them in place.
    """

    def __init__(
        self,
        nodes: Iterable[Any] = (),
        *,
        scope_key: str | None = None,
        settings: TreeSettings | None = None,
    ) -> None:
        """Initialize store.

        Args:
            nodes: Records to load (ids are assigned when missing)
            scope_key: Scope attribute name; defaults to TreeSettings.scope_key
            settings: Tree settings (defaults to the cached settings)
        """
        if scope_key is None:
            if settings is None:
                from reftree.core.settings import get_tree_settings

                settings = get_tree_settings()
            scope_key = settings.scope_key
        self.scope_key = scope_key
        self._records: dict[Any, Any] = {}
        self._removed: set[Any] = set()
        self._next_id = 1
        self._lazy = get_lazy_logger("repository.memory")
        for node in nodes:
            self._insert(node)

    @classmethod
    def from_paths(
        cls,
        paths: Iterable[Iterable[int]],
        *,
        scope_key: str | None = None,
        **fields: Any,
    ) -> MemoryTreeStore:
        """Build a store holding one TreeNode per path.

        Args:
            paths: Paths to create, in any order
            scope_key: Scope attribute name
            **fields: Attributes set on every node (e.g. the scope value)
        """
        return cls((TreeNode(path, **fields) for path in paths), scope_key=scope_key)

    def _insert(self, record: Any) -> Any:
        if record.path is None:
            raise InvalidPathError("Record must have a path before it is stored")
        if record.id is None:
            while self._next_id in self._records or self._next_id in self._removed:
                self._next_id += 1
            record.id = self._next_id
        self._records[record.id] = record
        return record

    def _require(self, record: Any) -> Any:
        stored = self._records.get(record.id)
        if stored is None:
            raise NotFoundError(type(record).__name__, {"id": record.id})
        return stored

    def scope_for(self, record: Any) -> TreeScope:
        """Scope the record belongs to."""
        return TreeScope.of(record, self.scope_key)

    def state_of(self, record: Any) -> NodeState:
        """Lifecycle state of the record in this store."""
        if record.id is not None and record.id in self._removed:
            return NodeState.REMOVED
        if record.id is not None and self._records.get(record.id) is record:
            return NodeState.PLACED
        return NodeState.UNASSIGNED

    async def find(self, flt: PathFilter) -> Sequence[Any]:
        """Records matching the filter, sorted by path."""
        matches = [record for record in self._records.values() if flt.matches(record)]
        matches.sort(key=lambda record: (record.path.components, record.id))
        self._lazy.debug(lambda: f"memory.find: {flt.describe()} -> {len(matches)} records")
        return matches

    async def find_one(self, flt: PathFilter) -> Any | None:
        """First record (by path) matching the filter, or None."""
        matches = await self.find(flt)
        return matches[0] if matches else None

    async def find_last(self, flt: PathFilter) -> Any | None:
        """Last record (by path) matching the filter, or None."""
        matches = await self.find(flt)
        return matches[-1] if matches else None

    async def count(self, flt: PathFilter) -> int:
        """Number of records matching the filter."""
        return sum(1 for record in self._records.values() if flt.matches(record))

    async def add(self, record: Any) -> Any:
        """Persist a new record (path already assigned)."""
        self._insert(record)
        self._lazy.debug(lambda: f"memory.add: id={record.id} path={record.path}")
        return record

    async def write_path(self, record: Any, path: NodePath) -> None:
        """Update the record's path; depth is re-derived from it."""
        self._require(record).path = path

    async def write_path_and_depth(self, record: Any, path: NodePath, depth: int) -> None:
        """Update path and depth together.

        Raises:
            InvalidPathError: If depth disagrees with the path length
        """
        if depth != len(path):
            raise InvalidPathError(f"Depth {depth} does not match path length {len(path)}", path=str(path))
        self._require(record).path = path

    async def increment_component(self, flt: PathFilter, level: int, delta: int) -> int:
        """Add ``delta`` to path component ``level`` of every matching record."""
        updated = 0
        for record in await self.find(flt):
            if len(record.path) <= level:
                continue
            record.path = record.path.with_component(level, record.path[level] + delta)
            updated += 1
        self._lazy.debug(lambda: f"memory.increment_component: level={level} delta={delta} -> {updated} updated")
        return updated

    async def remove(self, record: Any) -> None:
        """Delete the record.

        Raises:
            NotFoundError: If the store does not hold the record
        """
        self._require(record)
        del self._records[record.id]
        self._removed.add(record.id)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Any]:
        """Iterate over all records in path order (all scopes)."""
        return iter(sorted(self._records.values(), key=lambda record: (record.path.components, record.id)))


__all__ = [
    "MemoryTreeStore",
    "TreeNode",
]
