"""Renumbering pass and integrity checks.

The renumbering pass recomputes dense paths for every record of a scope
while keeping each record's structural position. Records are read in
ascending path order (a pre-order traversal) and each one's depth is taken
as authoritative; only the numeric path values are rewritten.

A stack of per-depth counters tracks the last sibling rank handed out at
each level of the current subtree context:

    depth == previous depth + 1   push a new counter (entering a subtree)
    depth <= previous depth       drop counters deeper than depth
    depth >  previous depth + 1   not a pre-order, the pass is aborted

then the counter at ``depth`` is incremented and the new path is the
counter stack itself. Running the pass on its own output changes nothing.

Example:
    1        1
    1.3      1.1
    1.3.1    1.1.1
    1.3.4    1.1.2
    1.3.4.6  1.1.2.1
    1.3.6    1.1.3
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from reftree.core.database.exceptions import TreeIntegrityError
from reftree.core.database.hierarchy.path import NodePath
from reftree.core.database.hierarchy.query import path_query
from reftree.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from reftree.core.database.hierarchy.store import TreeScope, TreeStore
    from reftree.core.settings.tree import TreeSettings

logger = logging.getLogger(__name__)
_lazy = get_lazy_logger(__name__)


@dataclass(slots=True, frozen=True)
class RenumberResult:
    """Outcome of a renumbering pass.

    Attributes:
        scanned: Records read from the scope
        updated: Records whose path was rewritten
    """

    scanned: int
    updated: int


def plan_renumber(
    records: Sequence[Any],
    depth_overrides: Mapping[Any, int] | None = None,
) -> list[tuple[Any, NodePath]]:
    """Compute new paths for records given in pre-order.

    Args:
        records: Records sorted ascending by current path
        depth_overrides: Depth to use instead of the stored one, by record id

    Returns:
        (record, new_path) pairs for records whose path changes

    Raises:
        TreeIntegrityError: If a record is more than one level deeper than
            its predecessor (or the first record is not a root)
    """
    overrides = depth_overrides or {}
    counters: list[int] = []
    changes: list[tuple[Any, NodePath]] = []

    for record in records:
        depth = overrides.get(record.id, record.depth)
        if depth is None:
            depth = len(record.path)
        if depth < 1 or depth > len(counters) + 1:
            raise TreeIntegrityError(
                f"Record at depth {depth} follows a record at depth {len(counters)}; "
                "records are not in pre-order",
                record_id=record.id,
                path=record.path,
            )
        if depth == len(counters) + 1:
            counters.append(0)
        else:
            del counters[depth:]
        counters[depth - 1] += 1

        new_path = NodePath(counters)
        if new_path != record.path or record.depth != depth:
            changes.append((record, new_path))

    return changes


async def renumber_tree(
    store: TreeStore,
    scope: TreeScope,
    *,
    depth_overrides: Mapping[Any, int] | None = None,
    settings: TreeSettings | None = None,
) -> RenumberResult:
    """Rewrite every path of a scope into dense, depth-consistent form.

    The whole plan is computed (and validated) before the first write, so
    a structural error leaves the store untouched. Safe to re-run after a
    partial failure.

    Args:
        store: Storage collaborator
        scope: Forest to renumber
        depth_overrides: Depth to use instead of the stored one, by record
            id (used when a removal outdents orphaned descendants)
        settings: Tree settings (defaults to the cached settings)

    Returns:
        RenumberResult with scanned and updated counts

    Raises:
        TreeIntegrityError: If the stored order is not a valid pre-order
    """
    if settings is None:
        from reftree.core.settings import get_tree_settings

        settings = get_tree_settings()

    records = await store.find(path_query(scope=scope))
    try:
        plan = plan_renumber(records, depth_overrides)
    except TreeIntegrityError as exc:
        logger.error(
            "Renumber aborted: tree is not in pre-order",
            extra={
                "operation": "tree.renumber",
                "scope": scope.describe(),
                "record_id": str(exc.record_id),
                "path": str(exc.path),
            },
        )
        raise

    for record, new_path in plan:
        await store.write_path(record, new_path)

    result = RenumberResult(scanned=len(records), updated=len(plan))
    if result.scanned > settings.slow_renumber_threshold:
        logger.info(
            "Renumber pass completed",
            extra={
                "operation": "tree.renumber",
                "scope": scope.describe(),
                "scanned": result.scanned,
                "updated": result.updated,
            },
        )
    else:
        _lazy.debug(
            lambda: f"tree.renumber: scope {scope.describe()} -> {result.updated}/{result.scanned} updated"
        )
    return result


# ============================================================================
# Integrity checks
# ============================================================================


@dataclass(slots=True)
class TreeProblems:
    """Invariant violations found in a scope.

    Attributes:
        duplicate_paths: Paths held by more than one record
        depth_mismatches: Ids of records whose depth differs from their path length
        sibling_gaps: Parent paths whose children are not numbered 1..N
        order_breaks: Ids of records deeper than their pre-order predecessor allows
    """

    duplicate_paths: list[NodePath] = field(default_factory=list)
    depth_mismatches: list[Any] = field(default_factory=list)
    sibling_gaps: list[NodePath] = field(default_factory=list)
    order_breaks: list[Any] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when no problem was found."""
        return not (self.duplicate_paths or self.depth_mismatches or self.sibling_gaps or self.order_breaks)

    def summary(self) -> str:
        """One-line description of the problems found."""
        if self.ok:
            return "no problems"
        parts = []
        if self.duplicate_paths:
            parts.append(f"duplicate paths {[p.format() for p in self.duplicate_paths]}")
        if self.depth_mismatches:
            parts.append(f"depth mismatches on ids {self.depth_mismatches}")
        if self.sibling_gaps:
            parts.append(f"sibling gaps under {[p.format() or '<roots>' for p in self.sibling_gaps]}")
        if self.order_breaks:
            parts.append(f"pre-order breaks at ids {self.order_breaks}")
        return "; ".join(parts)


async def find_problems(store: TreeStore, scope: TreeScope) -> TreeProblems:
    """Check uniqueness, depth consistency, sibling density and pre-order.

    Args:
        store: Storage collaborator
        scope: Forest to check

    Returns:
        TreeProblems (``ok`` is True for a consistent scope)
    """
    records = await store.find(path_query(scope=scope))
    problems = TreeProblems()

    by_path: dict[NodePath, int] = defaultdict(int)
    ranks: dict[NodePath, list[int]] = defaultdict(list)
    previous_depth = 0

    for record in records:
        path = record.path
        by_path[path] += 1
        ranks[path.parent_path].append(path.last)
        if record.depth != len(path):
            problems.depth_mismatches.append(record.id)
        if len(path) > previous_depth + 1:
            problems.order_breaks.append(record.id)
        previous_depth = len(path)

    problems.duplicate_paths = [path for path, count in by_path.items() if count > 1]
    problems.sibling_gaps = [
        parent for parent, values in ranks.items() if sorted(set(values)) != list(range(1, len(set(values)) + 1))
    ]
    return problems


__all__ = [
    "RenumberResult",
    "TreeProblems",
    "find_problems",
    "plan_renumber",
    "renumber_tree",
]
