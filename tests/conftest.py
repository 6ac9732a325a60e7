"""Pytest configuration and shared fixtures.

Organization:
    - Settings Fixtures: isolated tree/logging settings per test
    - Forest Fixtures: the reference two-tree forest in an in-memory store
    - Database Fixtures: SQLAlchemy engine and session on in-memory SQLite
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from reftree.core.database.hierarchy import (
    MemoryTreeStore,
    NodeState,
    TreeMutator,
    TreeNode,
    TreeScope,
)
from reftree.core.settings import TreeSettings, get_logging_settings, get_tree_settings

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

# Keep tests independent of the developer's environment
for _name in [name for name in os.environ if name.startswith("TREE_")]:
    del os.environ[_name]
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("LOG_JSON", "false")

# Reference forest for account 1: two trees, four levels deep.
FOREST_PATHS: dict[str, tuple[int, ...]] = {
    "n_1": (1,),
    "n_1_1": (1, 1),
    "n_1_1_1": (1, 1, 1),
    "n_1_1_2": (1, 1, 2),
    "n_1_1_2_1": (1, 1, 2, 1),
    "n_1_1_3": (1, 1, 3),
    "n_2": (2,),
    "n_2_1": (2, 1),
    "n_2_1_1": (2, 1, 1),
    "n_2_1_2": (2, 1, 2),
    "n_2_1_2_1": (2, 1, 2, 1),
    "n_2_1_3": (2, 1, 3),
}


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Clear cached settings so env overrides in one test never leak."""
    get_tree_settings.cache_clear()
    get_logging_settings.cache_clear()
    yield
    get_tree_settings.cache_clear()
    get_logging_settings.cache_clear()


@pytest.fixture
def tree_settings() -> TreeSettings:
    """Tree settings with post-mutation verification enabled."""
    return TreeSettings(scope_key="account_id", verify_mutations=True)


# ============================================================================
# Forest Fixtures
# ============================================================================


@dataclass
class Forest:
    """Reference forest held in a MemoryTreeStore.

    Attributes:
        store: Store holding every node
        nodes: Account 1 nodes by name (see FOREST_PATHS)
        other: Single root belonging to account 2
        mutator: TreeMutator with verification enabled
    """

    store: MemoryTreeStore
    nodes: dict[str, TreeNode]
    other: TreeNode
    mutator: TreeMutator
    scope: TreeScope = field(default_factory=lambda: TreeScope("account_id", 1))

    def __getitem__(self, name: str) -> TreeNode:
        return self.nodes[name]

    def paths(self) -> dict[str, str]:
        """Formatted path of every account 1 node still in the store."""
        return {
            name: node.path.format()
            for name, node in self.nodes.items()
            if self.store.state_of(node) is NodeState.PLACED
        }

    def ordered(self, account_id: Any = 1) -> list[str]:
        """Formatted paths of one account in store order."""
        return [node.path.format() for node in self.store if node.account_id == account_id]


@pytest.fixture
def forest(tree_settings: TreeSettings) -> Forest:
    """Two-tree forest for account 1 plus a lone root for account 2."""
    nodes = {name: TreeNode(path, account_id=1, name=name) for name, path in FOREST_PATHS.items()}
    other = TreeNode((1,), account_id=2, name="other")
    store = MemoryTreeStore([*nodes.values(), other], scope_key="account_id")
    return Forest(
        store=store,
        nodes=nodes,
        other=other,
        mutator=TreeMutator(store, settings=tree_settings),
    )


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Create async SQLAlchemy engine with in-memory SQLite.

    Yields:
        Async SQLAlchemy engine connected to in-memory SQLite.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create async database session with automatic table creation and cleanup.

    Creates all tables defined in Base.metadata, yields a session and rolls
    back whatever the test left pending.
    """
    from reftree.core.database.base import Base

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
