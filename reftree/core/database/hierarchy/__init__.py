"""Ordered forests stored as numeric materialized paths.

Each record carries its position as a sequence of positive integers
(``1``, ``1.1``, ``1.1.2``...) plus a depth equal to the sequence length.
Sorting by path gives a pre-order traversal, so a whole forest reads in
display order with a single ordered query. Sibling ranks are kept dense
(1..N) by the mutation protocol.

Components:
    - NodePath: Immutable path value (ordering, prefixes, key encoding)
    - path_query / PathFilter: Backend-neutral record filters
    - TreeStore: Storage contract (MemoryTreeStore, SQLAlchemyTreeStore)
    - TreeNavigator: Parent, children, siblings, ancestors, descendants
    - renumber_tree: Dense renumbering pass over one scope
    - TreeMutator: create, relocate, destroy with path maintenance
    - ReferencedTreeMixin: SQLAlchemy model integration

Example:
    >>> from reftree.core.database.hierarchy import MemoryTreeStore, TreeMutator, TreeNode
    >>>
    >>> store = MemoryTreeStore(scope_key="account_id")
    >>> tree = TreeMutator(store)
    >>> chapter = await tree.create(TreeNode(account_id=1))            # 1
    >>> section = await tree.create(TreeNode([1, 1], account_id=1))    # 1.1
    >>> await tree.navigator.children(chapter)
    [TreeNode(id=2, path='1.1')]
"""

from reftree.core.database.hierarchy.path import (
    KEY_SEPARATOR,
    KEY_WIDTH,
    MAX_COMPONENT,
    NodePath,
)
from reftree.core.database.hierarchy.store import (
    NodeState,
    TreeRecord,
    TreeScope,
    TreeStore,
)
from reftree.core.database.hierarchy.query import (
    DepthOp,
    PathFilter,
    path_query,
)
from reftree.core.database.hierarchy.navigator import (
    TreeNavigator,
    is_ancestor_of,
    is_descendant_of,
    is_or_is_ancestor_of,
    is_or_is_descendant_of,
    is_or_is_sibling_of,
    is_root,
    is_sibling_of,
)
from reftree.core.database.hierarchy.renumber import (
    RenumberResult,
    TreeProblems,
    find_problems,
    plan_renumber,
    renumber_tree,
)
from reftree.core.database.hierarchy.memory import (
    MemoryTreeStore,
    TreeNode,
)
from reftree.core.database.hierarchy.mutations import (
    MutationEvent,
    MutationHooks,
    Transition,
    TreeMutator,
)
from reftree.core.database.hierarchy.mixins import (
    ReferencedTreeMixin,
)

__all__ = [
    "KEY_SEPARATOR",
    "KEY_WIDTH",
    "MAX_COMPONENT",
    "DepthOp",
    "MemoryTreeStore",
    "MutationEvent",
    "MutationHooks",
    "NodePath",
    "NodeState",
    "PathFilter",
    "ReferencedTreeMixin",
    "RenumberResult",
    "Transition",
    "TreeMutator",
    "TreeNavigator",
    "TreeNode",
    "TreeProblems",
    "TreeRecord",
    "TreeScope",
    "TreeStore",
    "find_problems",
    "is_ancestor_of",
    "is_descendant_of",
    "is_or_is_ancestor_of",
    "is_or_is_descendant_of",
    "is_or_is_sibling_of",
    "is_root",
    "is_sibling_of",
    "path_query",
    "plan_renumber",
    "renumber_tree",
]
