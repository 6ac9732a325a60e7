"""Path query builder.

Every tree lookup is expressed as a ``PathFilter``: records whose first
``len(prefix)`` path components equal ``prefix``, intersected with an
optional depth constraint, an optional excluded id, optional bounds on the
component right after the prefix, and the tree scope.

The filter is backend-neutral. ``PathFilter.matches`` evaluates it in
Python (used by the in-memory store) and ``SQLAlchemyTreeStore`` compiles
it to SQL. Navigation, insertion shifts and renumbering all build their
filters through ``path_query`` and never query stores any other way.

Example:
    >>> from reftree.core.database.hierarchy.store import TreeScope
    >>> scope = TreeScope("account_id", 1)
    >>> # children of (1, 1)
    >>> flt = path_query([1, 1], scope=scope, depth=3)
    >>> # everything below (2,)
    >>> flt = path_query([2], scope=scope, depth=1, depth_op=DepthOp.GT)
"""

from __future__ import annotations

import operator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from reftree.core.database.hierarchy.path import NodePath

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from reftree.core.database.hierarchy.store import TreeScope


class DepthOp(StrEnum):
    """Comparison applied between a record's depth and the filter depth."""

    EQ = "eq"
    LT = "lt"
    LE = "le"
    GT = "gt"
    GE = "ge"

    @property
    def func(self) -> Callable[[Any, Any], bool]:
        """Python operator implementing this comparison."""
        return _DEPTH_OPERATORS[self]


_DEPTH_OPERATORS: dict[DepthOp, Callable[[Any, Any], bool]] = {
    DepthOp.EQ: operator.eq,
    DepthOp.LT: operator.lt,
    DepthOp.LE: operator.le,
    DepthOp.GT: operator.gt,
    DepthOp.GE: operator.ge,
}


@dataclass(slots=True, frozen=True)
class PathFilter:
    """Backend-neutral filter over tree records.

    Attributes:
        scope: Forest the query is confined to
        prefix: Required leading path components (empty matches all)
        depth: Depth to compare against, None for no depth constraint
        depth_op: How record depth is compared with ``depth``
        exclude_id: Record id left out of the result
        component_gt: Component after the prefix must be greater than this
        component_lt: Component after the prefix must be less than this
        component_ge: Component after the prefix must be at least this
    """

    scope: TreeScope
    prefix: NodePath = field(default_factory=NodePath)
    depth: int | None = None
    depth_op: DepthOp = DepthOp.EQ
    exclude_id: Any = None
    component_gt: int | None = None
    component_lt: int | None = None
    component_ge: int | None = None

    @property
    def component_index(self) -> int:
        """0-based index of the component the bounds apply to."""
        return self.prefix.depth

    @property
    def has_component_bounds(self) -> bool:
        """Whether any bound on the post-prefix component is set."""
        return (
            self.component_gt is not None
            or self.component_lt is not None
            or self.component_ge is not None
        )

    def matches(self, record: Any) -> bool:
        """Evaluate the filter against a record in Python.

        Args:
            record: Object exposing ``id``, ``path``, ``depth`` and the
                scope attribute

        Returns:
            True if the record satisfies every constraint
        """
        path = record.path
        if path is None:
            return False
        if self.scope.key is not None and getattr(record, self.scope.key) != self.scope.value:
            return False
        if self.exclude_id is not None and record.id == self.exclude_id:
            return False
        if not self.prefix.is_prefix_of(path):
            return False
        if self.depth is not None and not self.depth_op.func(record.depth, self.depth):
            return False
        if self.has_component_bounds:
            index = self.component_index
            if len(path) <= index:
                return False
            component = path[index]
            if self.component_gt is not None and not component > self.component_gt:
                return False
            if self.component_lt is not None and not component < self.component_lt:
                return False
            if self.component_ge is not None and not component >= self.component_ge:
                return False
        return True

    def describe(self) -> str:
        """Compact description for log messages."""
        parts = [f"scope={self.scope.describe()}", f"prefix={self.prefix.format() or '-'}"]
        if self.depth is not None:
            parts.append(f"depth {self.depth_op.value} {self.depth}")
        if self.exclude_id is not None:
            parts.append(f"id != {self.exclude_id!r}")
        for name in ("component_gt", "component_lt", "component_ge"):
            value = getattr(self, name)
            if value is not None:
                parts.append(f"{name}={value}")
        return ", ".join(parts)


def path_query(
    prefix: Iterable[int] | NodePath = (),
    *,
    scope: TreeScope,
    depth: int | None = None,
    depth_op: DepthOp = DepthOp.EQ,
    exclude_id: Any = None,
    component_gt: int | None = None,
    component_lt: int | None = None,
    component_ge: int | None = None,
) -> PathFilter:
    """Build a filter selecting records under ``prefix``.

    Args:
        prefix: Leading components every match must share
        scope: Forest to search (required; use TreeScope.unscoped() for none)
        depth: Depth constraint value
        depth_op: Depth comparison (default: equality)
        exclude_id: Id to leave out
        component_gt: Lower exclusive bound on the component after the prefix
        component_lt: Upper exclusive bound on the component after the prefix
        component_ge: Lower inclusive bound on the component after the prefix

    Returns:
        PathFilter ready to hand to a TreeStore

    Example:
        >>> from reftree.core.database.hierarchy.store import TreeScope
        >>> flt = path_query([1], scope=TreeScope.unscoped(), depth=2)
        >>> flt.describe()
        'scope=*, prefix=1, depth eq 2'
    """
    return PathFilter(
        scope=scope,
        prefix=prefix if isinstance(prefix, NodePath) else NodePath(prefix),
        depth=depth,
        depth_op=DepthOp(depth_op),
        exclude_id=exclude_id,
        component_gt=component_gt,
        component_lt=component_lt,
        component_ge=component_ge,
    )


__all__ = [
    "DepthOp",
    "PathFilter",
    "path_query",
]
