"""Integration tests for ReferencedTreeMixin over a real async session.

Covers the full mutation protocol against SQLite (via aiosqlite), with
paths read back from the database after each change:
- Renumbering a scope with gaps
- Create with and without a requested position
- Destroy (adopt/outdent) and destroy_with_children
- Relocation and the set_path bypass
- Navigation queries, predicates and class-level lookups

Each test gets fresh tables from the db_session fixture.
"""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import String, select, text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from reftree.core.database import (
    Base,
    IntegerPKMixin,
    InvalidPathError,
    NodePath,
    ReferencedTreeMixin,
    SQLAlchemyTreeStore,
    UUIDPKMixin,
)
from reftree.core.database.hierarchy import NodeState
from reftree.core.settings import TreeSettings

pytestmark = pytest.mark.integration

# ============================================================================
# Test Models
# ============================================================================


class Node(Base, IntegerPKMixin, ReferencedTreeMixin):
    """Tree scoped per account."""

    __tablename__ = "tree_test_nodes"
    __tree_scope__ = "account_id"

    account_id: Mapped[int] = mapped_column(index=True)
    name: Mapped[str] = mapped_column(String(100))


class Topic(Base, UUIDPKMixin, ReferencedTreeMixin):
    """Unscoped tree with UUID keys and slash-separated display paths."""

    __tablename__ = "tree_test_topics"
    __path_separator__ = "/"

    title: Mapped[str] = mapped_column(String(100))


# ============================================================================
# Fixtures
# ============================================================================

PATHS = {
    "n_1": [1],
    "n_1_1": [1, 1],
    "n_1_1_1": [1, 1, 1],
    "n_1_1_2": [1, 1, 2],
    "n_1_1_2_1": [1, 1, 2, 1],
    "n_1_1_3": [1, 1, 3],
    "n_2": [2],
    "n_2_1": [2, 1],
    "n_2_1_1": [2, 1, 1],
    "n_2_1_2": [2, 1, 2],
    "n_2_1_2_1": [2, 1, 2, 1],
    "n_2_1_3": [2, 1, 3],
}


@pytest.fixture
async def nodes(db_session: AsyncSession) -> dict[str, Node]:
    """Reference forest for account 1 plus one root in account 2."""
    rows = {name: Node(account_id=1, name=name, path=path) for name, path in PATHS.items()}
    rows["other"] = Node(account_id=2, name="other", path=[1])
    db_session.add_all(rows.values())
    await db_session.flush()
    return rows


@pytest.fixture
def tree(db_session: AsyncSession):
    """Verifying TreeMutator for Node."""
    return Node.tree(db_session, settings=TreeSettings(verify_mutations=True))


async def stored_paths(session: AsyncSession, account_id: int = 1) -> dict[str, str]:
    """Formatted paths as read back from the table."""
    await session.flush()
    result = await session.execute(
        select(Node.name, Node.path).where(Node.account_id == account_id).order_by(Node.path)
    )
    return {name: path.format() for name, path in result.all()}


# ============================================================================
# Columns and Formatting
# ============================================================================


class TestColumns:
    async def test_path_assignment_sets_depth(self, nodes):
        assert nodes["n_1_1_2_1"].depth == 4
        assert nodes["n_2"].depth == 1

    async def test_string_paths_are_parsed(self):
        topic = Topic(title="x", path="2/1")

        assert topic.path == (2, 1)
        assert topic.depth == 2

    async def test_key_is_stored_fixed_width(self, db_session, nodes):
        await db_session.flush()

        raw = await db_session.scalar(text("SELECT path FROM tree_test_nodes WHERE name = 'n_1_1_2_1'"))

        assert raw == "00000001.00000001.00000002.00000001"

    async def test_paths_read_back_as_node_paths(self, db_session, nodes):
        path = await db_session.scalar(select(Node.path).where(Node.name == "n_2_1_2"))

        assert isinstance(path, NodePath)
        assert path == (2, 1, 2)

    async def test_formatted_path(self, nodes):
        assert nodes["n_1_1_2_1"].formatted_path == "1.1.2.1"
        assert "path='1.1.2.1'" in repr(nodes["n_1_1_2_1"])

    async def test_store_scope_comes_from_model(self, db_session):
        store = SQLAlchemyTreeStore(db_session, Node)

        assert store.scope_key == "account_id"


# ============================================================================
# Renumber
# ============================================================================


class TestRenumberTree:
    async def test_fixes_structure_from_depths(self, db_session, nodes, tree):
        for name, path in {
            "n_1_1": [1, 3],
            "n_1_1_1": [1, 3, 1],
            "n_1_1_2": [1, 3, 4],
            "n_1_1_2_1": [1, 3, 4, 6],
            "n_1_1_3": [1, 3, 6],
        }.items():
            await tree.set_path(nodes[name], path)

        result = await Node.renumber_tree(db_session, 1)

        assert result.updated == 5
        assert await stored_paths(db_session) == {name: NodePath(p).format() for name, p in PATHS.items()}

    async def test_other_account_untouched(self, db_session, nodes, tree):
        await tree.set_path(nodes["other"], [4])

        await Node.renumber_tree(db_session, 1)

        assert await stored_paths(db_session, account_id=2) == {"other": "4"}


# ============================================================================
# Create
# ============================================================================


class TestCreate:
    async def test_only_item_in_scope(self, db_session, nodes, tree):
        node = await tree.create(Node(account_id=3, name="first"))

        assert node.path == (1,)
        assert node.id is not None

    async def test_new_root_goes_last(self, db_session, nodes, tree):
        node = await tree.create(Node(account_id=1, name="new"))

        assert (await stored_paths(db_session))["new"] == "3"

    async def test_insert_moves_subsequent_nodes(self, db_session, nodes, tree):
        await tree.create(Node(account_id=1, name="new", path=[1, 1]))

        paths = await stored_paths(db_session)
        assert paths["new"] == "1.1"
        assert paths["n_1_1"] == "1.2"
        assert paths["n_1_1_1"] == "1.2.1"
        assert paths["n_1_1_2"] == "1.2.2"
        assert paths["n_1_1_2_1"] == "1.2.2.1"
        assert paths["n_1_1_3"] == "1.2.3"
        assert paths["n_2_1"] == "2.1"

    async def test_insert_does_not_cross_scopes(self, db_session, nodes, tree):
        await tree.create(Node(account_id=1, name="new", path=[1]))

        assert await stored_paths(db_session, account_id=2) == {"other": "1"}

    async def test_child_via_assign_parent(self, db_session, nodes, tree):
        node = Node(account_id=1, name="child")
        await tree.assign_parent(node, nodes["n_1_1_2"])
        await tree.create(node)

        assert (await stored_paths(db_session))["child"] == "1.1.2.2"

    async def test_missing_parent(self, db_session, nodes, tree):
        with pytest.raises(InvalidPathError):
            await tree.create(Node(account_id=1, name="lost", path=[7, 1]))


# ============================================================================
# Destroy
# ============================================================================


class TestDestroy:
    async def test_renumbers_siblings_and_descendants(self, db_session, nodes, tree):
        await tree.destroy(nodes["n_1_1_2"])

        paths = await stored_paths(db_session)
        assert "n_1_1_2" not in paths
        assert await db_session.get(Node, nodes["n_1_1_2"].id) is None
        assert paths["n_1_1_1"] == "1.1.1"
        assert paths["n_1_1_2_1"] == "1.1.1.1"
        assert paths["n_1_1_3"] == "1.1.2"

    async def test_outdents_when_first_root_deleted(self, db_session, nodes, tree):
        await tree.destroy(nodes["n_1"])

        paths = await stored_paths(db_session)
        assert paths["n_1_1"] == "1"
        assert paths["n_1_1_1"] == "1.1"
        assert paths["n_1_1_2"] == "1.2"
        assert paths["n_1_1_2_1"] == "1.2.1"
        assert paths["n_1_1_3"] == "1.3"
        assert nodes["n_1_1"].depth == 1

    async def test_joins_trees_when_later_root_deleted(self, db_session, nodes, tree):
        await tree.destroy(nodes["n_2"])

        paths = await stored_paths(db_session)
        assert paths["n_2_1"] == "1.2"
        assert paths["n_2_1_1"] == "1.2.1"
        assert paths["n_2_1_2"] == "1.2.2"
        assert paths["n_2_1_2_1"] == "1.2.2.1"
        assert paths["n_2_1_3"] == "1.2.3"

    async def test_state_after_destroy(self, db_session, nodes, tree):
        await tree.destroy(nodes["n_2_1_3"])

        assert tree.state_of(nodes["n_2_1_3"]) is NodeState.REMOVED

    async def test_destroy_with_children(self, db_session, nodes, tree):
        removed = await tree.destroy_with_children(nodes["n_1_1_2"])

        paths = await stored_paths(db_session)
        assert removed == 2
        assert "n_1_1_2" not in paths
        assert "n_1_1_2_1" not in paths
        assert paths["n_1_1_1"] == "1.1.1"
        assert paths["n_1_1_3"] == "1.1.2"


# ============================================================================
# Relocate and set_path
# ============================================================================


class TestRelocate:
    async def test_move_to_parent(self, db_session, nodes, tree):
        await tree.move_to_parent(nodes["n_2"], nodes["n_1"])

        paths = await stored_paths(db_session)
        assert paths["n_2"] == "1.3"
        assert paths["n_2_1"] == "1.2"
        assert paths["n_2_1_2_1"] == "1.2.2.1"

    async def test_relocate_within_siblings(self, db_session, nodes, tree):
        await tree.relocate(nodes["n_1_1_3"], [1, 1, 1])

        paths = await stored_paths(db_session)
        assert paths["n_1_1_3"] == "1.1.1"
        assert paths["n_1_1_1"] == "1.1.2"
        assert paths["n_1_1_2_1"] == "1.1.3.1"


class TestSetPath:
    async def test_updates_path_and_depth(self, db_session, nodes, tree):
        await tree.set_path(nodes["n_1"], [1, 2, 3])
        await db_session.refresh(nodes["n_1"])

        assert nodes["n_1"].path == (1, 2, 3)
        assert nodes["n_1"].depth == 3

    async def test_does_not_renumber(self, db_session, nodes, tree):
        await tree.set_path(nodes["n_1"], [1, 2, 3])

        paths = await stored_paths(db_session)
        assert paths["n_1_1"] == "1.1"
        assert paths["n_2"] == "2"


# ============================================================================
# Navigation
# ============================================================================


class TestNavigation:
    async def test_scoped_siblings(self, db_session, nodes):
        assert await nodes["other"].get_siblings(db_session) == []
        assert nodes["other"] not in await nodes["n_1"].get_siblings(db_session)

    async def test_parent_and_root(self, db_session, nodes):
        assert await nodes["n_1_1_2_1"].get_parent(db_session) is nodes["n_1_1_2"]
        assert await nodes["n_1"].get_parent(db_session) is None
        assert await nodes["n_2_1_2_1"].get_root(db_session) is nodes["n_2"]

    async def test_ancestors(self, db_session, nodes):
        ancestors = await nodes["n_1_1_2_1"].get_ancestors(db_session)

        assert [a.name for a in ancestors] == ["n_1", "n_1_1", "n_1_1_1", "n_1_1_2", "n_1_1_3"]

    async def test_children(self, db_session, nodes):
        children = await nodes["n_1_1"].get_children(db_session)

        assert [c.name for c in children] == ["n_1_1_1", "n_1_1_2", "n_1_1_3"]

    async def test_siblings(self, db_session, nodes):
        node = nodes["n_1_1_2"]

        assert [s.name for s in await node.get_siblings(db_session)] == ["n_1_1_1", "n_1_1_3"]
        assert [s.name for s in await node.get_siblings(db_session, include_self=True)] == [
            "n_1_1_1",
            "n_1_1_2",
            "n_1_1_3",
        ]
        assert [s.name for s in await node.get_previous_siblings(db_session)] == ["n_1_1_1"]
        assert [s.name for s in await node.get_next_siblings(db_session)] == ["n_1_1_3"]

    async def test_descendants(self, db_session, nodes):
        node = nodes["n_2_1"]

        descendants = await node.get_descendants(db_session)
        subtree = await node.get_descendants(db_session, include_self=True)

        assert [d.name for d in descendants] == ["n_2_1_1", "n_2_1_2", "n_2_1_2_1", "n_2_1_3"]
        assert subtree[0] is node
        assert await node.get_subtree_count(db_session) == 4
        assert await node.get_subtree_count(db_session, include_self=True) == 5

    async def test_predicates(self, nodes):
        assert nodes["n_1"].is_root
        assert nodes["n_1"].is_ancestor_of(nodes["n_1_1_2_1"])
        assert nodes["n_1_1_2_1"].is_descendant_of(nodes["n_1_1"])
        assert nodes["n_1_1_1"].is_sibling_of(nodes["n_1_1_3"])
        assert not nodes["n_1_1_1"].is_sibling_of(nodes["n_2_1_1"])
        assert nodes["n_2"].is_or_is_ancestor_of(nodes["n_2"])

    async def test_roots_by_scope(self, db_session, nodes):
        roots = await Node.get_roots(db_session, 1)

        assert [r.name for r in roots] == ["n_1", "n_2"]
        assert [r.name for r in await Node.get_roots(db_session, 2)] == ["other"]

    async def test_get_by_path(self, db_session, nodes):
        assert await Node.get_by_path(db_session, "1.1.2", 1) is nodes["n_1_1_2"]
        assert await Node.get_by_path(db_session, [1], 2) is nodes["other"]
        assert await Node.get_by_path(db_session, [9, 9], 1) is None


# ============================================================================
# UUID keys, unscoped forest
# ============================================================================


class TestUnscopedTopics:
    async def test_build_and_reorder(self, db_session):
        tree = Topic.tree(db_session, settings=TreeSettings(verify_mutations=True))

        guide = await tree.create(Topic(title="guide"))
        faq = await tree.create(Topic(title="faq"))
        setup = Topic(title="setup")
        await tree.assign_parent(setup, guide)
        await tree.create(setup)
        await tree.move_to_parent(faq, guide)

        assert isinstance(guide.id, uuid.UUID)
        assert setup.formatted_path == "1/1"
        assert faq.formatted_path == "1/2"
        assert [t.title for t in await Topic.get_roots(db_session)] == ["guide"]
        assert await Topic.get_by_path(db_session, "1/2") is faq
