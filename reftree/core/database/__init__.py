"""Core database package: tree models, path types and tree stores.

Base Classes and Mixins:
    - Base: Declarative base with constraint naming and auto table naming
    - IntegerPKMixin, UUIDPKMixin: Primary key strategies
    - ReferencedTreeMixin: path/depth columns and tree navigation

Custom Types:
    - PathType: Materialized path stored as a byte-sortable key

Stores:
    - MemoryTreeStore: In-process forest
    - SQLAlchemyTreeStore[T]: Async SQLAlchemy forest bound to a session

Exceptions:
    - TreeError: Base exception for tree operations
    - NotFoundError: Record not found (or already removed)
    - InvalidPathError: Malformed path or impossible target position
    - TreeIntegrityError: Stored order violates the tree invariants
    - InvalidTransitionError: Mutation not allowed in the record's state

Example:
    from reftree.core.database import Base, IntegerPKMixin, ReferencedTreeMixin

    class Page(Base, IntegerPKMixin, ReferencedTreeMixin):
        __tablename__ = "pages"
        __tree_scope__ = "site_id"
        site_id: Mapped[int] = mapped_column(index=True)

    async with session.begin():
        tree = Page.tree(session)
        await tree.create(Page(site_id=1))
"""

from reftree.core.database.exceptions import (
    InvalidPathError,
    InvalidTransitionError,
    NotFoundError,
    TreeError,
    TreeIntegrityError,
)
from reftree.core.database.base import (
    NAMING_CONVENTION,
    Base,
    IntegerPKMixin,
    UUIDPKMixin,
)

# hierarchy must load before types (mixins imports PathType from it)
from reftree.core.database.hierarchy import (
    MemoryTreeStore,
    NodePath,
    ReferencedTreeMixin,
    TreeMutator,
    TreeNavigator,
    TreeNode,
    TreeScope,
    path_query,
    renumber_tree,
)
from reftree.core.database.types import PathType
from reftree.core.database.repository import SQLAlchemyTreeStore

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "IntegerPKMixin",
    "InvalidPathError",
    "InvalidTransitionError",
    "MemoryTreeStore",
    "NodePath",
    "NotFoundError",
    "PathType",
    "ReferencedTreeMixin",
    "SQLAlchemyTreeStore",
    "TreeError",
    "TreeIntegrityError",
    "TreeMutator",
    "TreeNavigator",
    "TreeNode",
    "TreeScope",
    "UUIDPKMixin",
    "path_query",
    "renumber_tree",
]
