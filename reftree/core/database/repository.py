"""SQLAlchemy implementation of the TreeStore protocol.

Path filters are compiled to plain column comparisons over the sort-key
column written by ``PathType``:

    prefix          path = :key OR path LIKE :key || '.%'
    depth           depth <op> :depth
    component bound substr(path, :offset, KEY_WIDTH) <op> :padded
    scope           <scope column> = :value
    exclude_id      id != :id

Results are ordered by the path column (pre-order), with the primary key
as tie-breaker.

The store is bound to one ``AsyncSession`` and never commits; the caller
owns the transaction and should serialize mutations per scope.

Example:
    async with session.begin():
        store = SQLAlchemyTreeStore(session, Page)
        tree = TreeMutator(store)
        await tree.create(Page(site_id=1, title="Intro"))
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import func, inspect, select

from reftree.core.database.exceptions import InvalidPathError, NotFoundError
from reftree.core.database.hierarchy.store import NodeState, TreeScope
from reftree.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.sql.expression import ColumnElement

    from reftree.core.database.hierarchy.path import NodePath
    from reftree.core.database.hierarchy.query import PathFilter
    from reftree.core.settings.tree import TreeSettings

T = TypeVar("T")


class SQLAlchemyTreeStore(Generic[T]):
    """Tree store over a mapped model with ``path`` and ``depth`` columns.

    Provides:
        - find / find_one / find_last / count for compiled PathFilters
        - add(record) -> T
        - write_path / write_path_and_depth (in-place attribute updates)
        - increment_component(filter, level, delta) -> int
        - remove(record) -> None

    Records returned by queries come from the session's identity map, so
    a path written through the store is visible on every reference to the
    same row.
    """

    __slots__ = ("session", "model", "scope_key", "_logger", "_lazy")

    def __init__(
        self,
        session: AsyncSession,
        model: type[T],
        *,
        scope_key: str | None = None,
        settings: TreeSettings | None = None,
    ) -> None:
        """Initialize store.

        Args:
            session: Async database session (caller-managed transaction)
            model: Mapped tree model (e.g. a ReferencedTreeMixin subclass)
            scope_key: Scope column name; defaults to ``model.__tree_scope__``,
                then to TreeSettings.scope_key
            settings: Tree settings (defaults to the cached settings)
        """
        if scope_key is None:
            scope_key = getattr(model, "__tree_scope__", None)
        if scope_key is None:
            if settings is None:
                from reftree.core.settings import get_tree_settings

                settings = get_tree_settings()
            scope_key = settings.scope_key
        self.session = session
        self.model = model
        self.scope_key = scope_key
        self._logger = logging.getLogger(f"repository.{model.__name__}")
        self._lazy = get_lazy_logger(f"repository.{model.__name__}")

    # ------------------------------------------------------------------
    # Filter compilation
    # ------------------------------------------------------------------

    def compile_filter(self, flt: PathFilter) -> list[ColumnElement[bool]]:
        """Translate a PathFilter into WHERE clauses for this model."""
        model: Any = self.model
        clauses: list[ColumnElement[bool]] = [model.path.is_not(None)]

        if flt.scope.key is not None:
            clauses.append(getattr(model, flt.scope.key) == flt.scope.value)
        if flt.exclude_id is not None:
            clauses.append(model.id != flt.exclude_id)
        if flt.prefix:
            clauses.append(model.path.within(flt.prefix))
        if flt.depth is not None:
            clauses.append(flt.depth_op.func(model.depth, flt.depth))
        if flt.has_component_bounds:
            clauses.append(
                model.path.component_between(
                    flt.component_index,
                    gt=flt.component_gt,
                    lt=flt.component_lt,
                    ge=flt.component_ge,
                )
            )
        return clauses

    def _select(self, flt: PathFilter, *, descending: bool = False) -> Select[tuple[T]]:
        model: Any = self.model
        stmt = select(self.model).where(*self.compile_filter(flt))
        if descending:
            return stmt.order_by(model.path.desc(), model.id.desc())
        return stmt.order_by(model.path, model.id)

    # ------------------------------------------------------------------
    # Scope and lifecycle
    # ------------------------------------------------------------------

    def scope_for(self, record: Any) -> TreeScope:
        """Scope the record belongs to."""
        return TreeScope.of(record, self.scope_key)

    def state_of(self, record: Any) -> NodeState:
        """Lifecycle state derived from the record's session state."""
        state = inspect(record)
        if state.deleted or state.was_deleted:
            return NodeState.REMOVED
        if state.transient or state.pending:
            return NodeState.UNASSIGNED
        return NodeState.PLACED

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def find(self, flt: PathFilter) -> Sequence[T]:
        """Records matching the filter, sorted by path."""
        result = await self.session.execute(self._select(flt))
        items = result.scalars().all()
        self._lazy.debug(lambda: f"db.find: {self.model.__name__}({flt.describe()}) -> {len(items)} items")
        return items

    async def find_one(self, flt: PathFilter) -> T | None:
        """First record (by path) matching the filter, or None."""
        result = await self.session.execute(self._select(flt).limit(1))
        return result.scalars().first()

    async def find_last(self, flt: PathFilter) -> T | None:
        """Last record (by path) matching the filter, or None."""
        result = await self.session.execute(self._select(flt, descending=True).limit(1))
        return result.scalars().first()

    async def count(self, flt: PathFilter) -> int:
        """Number of records matching the filter."""
        stmt = select(func.count()).select_from(self.model).where(*self.compile_filter(flt))
        total = await self.session.scalar(stmt)
        return total or 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add(self, record: T) -> T:
        """Persist a new record (path already assigned)."""
        if getattr(record, "path", None) is None:
            raise InvalidPathError("Record must have a path before it is stored")
        self.session.add(record)
        await self.session.flush()
        self._lazy.debug(lambda: f"db.create: {self.model.__name__}(id={getattr(record, 'id', None)})")
        return record

    async def write_path(self, record: Any, path: NodePath) -> None:
        """Update the record's path; depth is re-derived from it."""
        record.path = path

    async def write_path_and_depth(self, record: Any, path: NodePath, depth: int) -> None:
        """Update path and depth together.

        Raises:
            InvalidPathError: If depth disagrees with the path length
        """
        if depth != len(path):
            raise InvalidPathError(f"Depth {depth} does not match path length {len(path)}", path=str(path))
        record.path = path
        record.depth = depth
        await self.session.flush()

    async def increment_component(self, flt: PathFilter, level: int, delta: int) -> int:
        """Add ``delta`` to path component ``level`` of every matching record."""
        updated = 0
        for record in await self.find(flt):
            path: Any = record.path  # type: ignore[attr-defined]
            if len(path) <= level:
                continue
            record.path = path.with_component(level, path[level] + delta)  # type: ignore[attr-defined]
            updated += 1
        await self.session.flush()
        self._lazy.debug(
            lambda: f"db.increment_component: {self.model.__name__}(level={level}, delta={delta}) -> {updated} updated"
        )
        return updated

    async def remove(self, record: Any) -> None:
        """Delete the record.

        Raises:
            NotFoundError: If the record is not persisted
        """
        state = inspect(record)
        if not state.persistent:
            raise NotFoundError(self.model.__name__, {"id": getattr(record, "id", None)})
        await self.session.delete(record)
        await self.session.flush()
        self._logger.info(
            "Entity deleted",
            extra={
                "entity": self.model.__name__,
                "id": str(record.id),
                "operation": "db.delete",
            },
        )


__all__ = [
    "SQLAlchemyTreeStore",
]
