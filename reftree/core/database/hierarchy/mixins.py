"""Mixin for SQLAlchemy models stored as a materialized-path forest.

Adds the ``path`` and ``depth`` columns plus navigation helpers that go
through ``SQLAlchemyTreeStore`` and ``TreeNavigator``. Mutations are
available through ``Model.tree(session)``, which returns a ``TreeMutator``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy.orm import Mapped, mapped_column, validates

from reftree.core.database.hierarchy import navigator as predicates
from reftree.core.database.hierarchy.navigator import TreeNavigator
from reftree.core.database.hierarchy.path import NodePath
from reftree.core.database.hierarchy.query import path_query
from reftree.core.database.hierarchy.store import TreeScope
from reftree.core.database.types import PathType

if TYPE_CHECKING:
    from collections.abc import Sequence
    from typing import Self

    from sqlalchemy.ext.asyncio import AsyncSession

    from reftree.core.database.hierarchy.mutations import TreeMutator
    from reftree.core.database.hierarchy.renumber import RenumberResult
    from reftree.core.database.repository import SQLAlchemyTreeStore
    from reftree.core.settings.tree import TreeSettings


class ReferencedTreeMixin:
    """Mixin for models kept in pre-order by a numeric materialized path.

    Example:
        >>> from reftree.core.database import Base, IntegerPKMixin
        >>>
        >>> class Page(Base, IntegerPKMixin, ReferencedTreeMixin):
        ...     __tablename__ = "pages"
        ...     __tree_scope__ = "site_id"
        ...     site_id: Mapped[int] = mapped_column(index=True)
        ...     title: Mapped[str] = mapped_column(String(255))
        >>>
        >>> tree = Page.tree(session)
        >>> intro = await tree.create(Page(site_id=1, title="Intro"))   # 1
        >>> setup = await tree.create(Page(site_id=1, title="Setup"))   # 2
        >>> await tree.move_to_parent(setup, intro)                     # 1.1
        >>> await intro.get_children(session)
        [<Page setup>]

    Note:
        - Do not ``session.add`` a record before ``tree.create``: the path is
          assigned by the mutator and the columns are NOT NULL
        - All navigation methods are async and require a session parameter
    """

    __allow_unmapped__ = True

    # Scope column name; None falls back to TreeSettings.scope_key
    __tree_scope__: ClassVar[str | None] = None
    # Separator for formatted_path; None falls back to TreeSettings.separator
    __path_separator__: ClassVar[str | None] = None

    path: Mapped[NodePath] = mapped_column(PathType(), index=True)
    depth: Mapped[int] = mapped_column(index=True)

    @validates("path")
    def _sync_depth(self, key: str, value: Any) -> NodePath | None:
        """Re-derive depth whenever the path is assigned."""
        _ = key
        if value is None:
            self.depth = None  # type: ignore[assignment]
            return None
        if isinstance(value, str):
            value = NodePath.parse(value, self._separator())
        path = value if isinstance(value, NodePath) else NodePath(value)
        self.depth = path.depth
        return path

    @classmethod
    def _separator(cls) -> str:
        if cls.__path_separator__ is not None:
            return cls.__path_separator__
        from reftree.core.settings import get_tree_settings

        return get_tree_settings().separator

    # ------------------------------------------------------------------
    # Store plumbing
    # ------------------------------------------------------------------

    @classmethod
    def tree_store(cls, session: AsyncSession, *, settings: TreeSettings | None = None) -> SQLAlchemyTreeStore[Self]:
        """TreeStore for this model bound to ``session``."""
        from reftree.core.database.repository import SQLAlchemyTreeStore

        return SQLAlchemyTreeStore(session, cls, settings=settings)

    @classmethod
    def tree(cls, session: AsyncSession, *, settings: TreeSettings | None = None) -> TreeMutator:
        """TreeMutator for this model bound to ``session``."""
        from reftree.core.database.hierarchy.mutations import TreeMutator

        return TreeMutator(cls.tree_store(session, settings=settings), settings=settings)

    @classmethod
    def tree_scope(cls, scope_value: Any = None) -> TreeScope:
        """Scope selecting the forest with ``scope_value``."""
        key = cls.__tree_scope__
        if key is None:
            from reftree.core.settings import get_tree_settings

            key = get_tree_settings().scope_key
        return TreeScope(key, scope_value) if key is not None else TreeScope.unscoped()

    def _navigator(self, session: AsyncSession) -> TreeNavigator:
        return TreeNavigator(type(self).tree_store(session))

    # ------------------------------------------------------------------
    # Properties (no queries)
    # ------------------------------------------------------------------

    @property
    def is_root(self) -> bool:
        """Check if this is a root node (depth 1)."""
        return predicates.is_root(self)

    @property
    def formatted_path(self) -> str:
        """Path joined with the model's separator, e.g. "1.1.2.1"."""
        if self.path is None:
            return ""
        return self.path.format(self._separator())

    def is_ancestor_of(self, other: Any) -> bool:
        """Whether this record is a strict ancestor of ``other``."""
        return predicates.is_ancestor_of(self, other)

    def is_or_is_ancestor_of(self, other: Any) -> bool:
        return predicates.is_or_is_ancestor_of(self, other)

    def is_descendant_of(self, other: Any) -> bool:
        """Whether this record is a strict descendant of ``other``."""
        return predicates.is_descendant_of(self, other)

    def is_or_is_descendant_of(self, other: Any) -> bool:
        return predicates.is_or_is_descendant_of(self, other)

    def is_sibling_of(self, other: Any) -> bool:
        """Whether both records share depth and parent path."""
        return predicates.is_sibling_of(self, other)

    def is_or_is_sibling_of(self, other: Any) -> bool:
        return predicates.is_or_is_sibling_of(self, other)

    # ------------------------------------------------------------------
    # Navigation (queries)
    # ------------------------------------------------------------------

    async def get_parent(self, session: AsyncSession) -> Self | None:
        """Get parent node.

        Returns:
            Parent instance or None if this is a root node
        """
        return await self._navigator(session).parent(self)

    async def get_root(self, session: AsyncSession) -> Self | None:
        """Get the root of this node's tree (the node itself for roots)."""
        return await self._navigator(session).root(self)

    async def get_ancestors(self, session: AsyncSession) -> list[Self]:
        """Get every shallower node under the same root, in path order."""
        return list(await self._navigator(session).ancestors(self))

    async def get_children(self, session: AsyncSession) -> list[Self]:
        """Get direct children in rank order."""
        return list(await self._navigator(session).children(self))

    async def get_siblings(self, session: AsyncSession, *, include_self: bool = False) -> list[Self]:
        """Get nodes sharing this node's parent.

        Args:
            session: Async database session
            include_self: Whether to include this node in results

        Returns:
            List of siblings in rank order
        """
        navigator = self._navigator(session)
        if include_self:
            return list(await navigator.self_and_siblings(self))
        return list(await navigator.siblings(self))

    async def get_previous_siblings(self, session: AsyncSession) -> list[Self]:
        """Siblings ranked before this node."""
        return list(await self._navigator(session).previous_siblings(self))

    async def get_next_siblings(self, session: AsyncSession) -> list[Self]:
        """Siblings ranked after this node."""
        return list(await self._navigator(session).next_siblings(self))

    async def get_descendants(self, session: AsyncSession, *, include_self: bool = False) -> list[Self]:
        """Get the whole subtree below this node in pre-order.

        Args:
            session: Async database session
            include_self: Whether to start the list with this node
        """
        navigator = self._navigator(session)
        if include_self:
            return await navigator.self_and_descendants(self)
        return list(await navigator.descendants(self))

    async def get_subtree_count(self, session: AsyncSession, *, include_self: bool = False) -> int:
        """Count nodes below this one (plus itself when include_self)."""
        count = await self._navigator(session).descendant_count(self)
        return count + 1 if include_self else count

    # ------------------------------------------------------------------
    # Class-level queries
    # ------------------------------------------------------------------

    @classmethod
    async def get_roots(cls, session: AsyncSession, scope_value: Any = None) -> Sequence[Self]:
        """Depth-1 nodes of the forest ``scope_value``, in order."""
        navigator = TreeNavigator(cls.tree_store(session))
        return await navigator.roots(cls.tree_scope(scope_value))

    @classmethod
    async def get_by_path(cls, session: AsyncSession, path: Any, scope_value: Any = None) -> Self | None:
        """Node at exactly ``path`` in the forest ``scope_value``."""
        if isinstance(path, str):
            path = NodePath.parse(path, cls._separator())
        target = path if isinstance(path, NodePath) else NodePath(path)
        store = cls.tree_store(session)
        return await store.find_one(path_query(target, scope=cls.tree_scope(scope_value), depth=target.depth))

    @classmethod
    async def renumber_tree(cls, session: AsyncSession, scope_value: Any = None) -> RenumberResult:
        """Rewrite the forest ``scope_value`` into dense numbering."""
        return await cls.tree(session).renumber(cls.tree_scope(scope_value))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={getattr(self, 'id', None)!r} path={self.formatted_path!r}>"


__all__ = [
    "ReferencedTreeMixin",
]
