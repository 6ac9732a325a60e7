"""Mutation protocol for materialized-path trees.

``TreeMutator`` is the only component that changes paths. Each entry point
runs a fixed sequence of named steps:

    create                 check state, before_create hooks, assign path
                           (append root or shift siblings at the requested
                           position), add record, verify, after_create hooks
    relocate               check state, before_relocate hooks, plan the detach
                           of the record, resolve and validate the target, apply
                           the detach, shift siblings at the target, write path,
                           renumber, verify, after_relocate hooks
    destroy                check state, before_destroy hooks, compute outdents
                           for orphaned descendants, remove, renumber, verify,
                           after_destroy hooks
    destroy_with_children  as destroy, but removes the whole subtree
                           (deepest first) and renumbers once at the end

Record lifecycle: UNASSIGNED -> PLACED -> (relocated)* -> REMOVED.

When a record leaves its position (destroy, relocate) its descendants keep
their depth and are adopted by the previous sibling's subtree; when there is
no previous sibling they outdent one level instead.

Callers must serialize mutations per scope (one transaction or lock per
scope). After any failure mid-mutation, ``renumber(scope)`` restores a
consistent numbering.
"""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from reftree.core.database.exceptions import (
    InvalidPathError,
    InvalidTransitionError,
    NotFoundError,
    TreeIntegrityError,
)
from reftree.core.database.hierarchy.navigator import TreeNavigator
from reftree.core.database.hierarchy.path import NodePath
from reftree.core.database.hierarchy.query import DepthOp, path_query
from reftree.core.database.hierarchy.renumber import (
    RenumberResult,
    find_problems,
    plan_renumber,
    renumber_tree,
)
from reftree.core.database.hierarchy.store import NodeState
from reftree.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence

    from reftree.core.database.hierarchy.store import TreeScope, TreeStore
    from reftree.core.settings.tree import TreeSettings

logger = logging.getLogger(__name__)
_lazy = get_lazy_logger(__name__)


class Transition(StrEnum):
    """Lifecycle transitions driven by the mutation entry points."""

    CREATE = "create"
    RELOCATE = "relocate"
    DESTROY = "destroy"


# transition -> (states it may start from, state it ends in)
_TRANSITIONS: dict[Transition, tuple[frozenset[NodeState], NodeState]] = {
    Transition.CREATE: (frozenset({NodeState.UNASSIGNED}), NodeState.PLACED),
    Transition.RELOCATE: (frozenset({NodeState.PLACED}), NodeState.PLACED),
    Transition.DESTROY: (frozenset({NodeState.PLACED}), NodeState.REMOVED),
}


class MutationEvent(StrEnum):
    """Hook points around the mutation entry points."""

    BEFORE_CREATE = "before_create"
    AFTER_CREATE = "after_create"
    BEFORE_RELOCATE = "before_relocate"
    AFTER_RELOCATE = "after_relocate"
    BEFORE_DESTROY = "before_destroy"
    AFTER_DESTROY = "after_destroy"


class MutationHooks:
    """Ordered pre/post mutation callbacks.

    Callbacks receive the record plus keyword context and may be plain
    functions or coroutines. Exceptions raised by a before-hook abort the
    mutation before anything is written.

    Example:
        >>> hooks = MutationHooks()
        >>> @hooks.register("after_create")
        ... def announce(record, **context):
        ...     print("created", record.path)
    """

    def __init__(self) -> None:
        self._callbacks: dict[MutationEvent, list[Callable[..., Any]]] = defaultdict(list)

    def register(self, event: MutationEvent | str, callback: Callable[..., Any] | None = None) -> Any:
        """Register a callback; usable directly or as a decorator."""
        key = MutationEvent(event)
        if callback is None:

            def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
                self._callbacks[key].append(func)
                return func

            return decorator
        self._callbacks[key].append(callback)
        return callback

    def unregister(self, event: MutationEvent | str, callback: Callable[..., Any]) -> None:
        """Remove a previously registered callback."""
        self._callbacks[MutationEvent(event)].remove(callback)

    async def run(self, event: MutationEvent, record: Any, **context: Any) -> None:
        """Invoke the callbacks of ``event`` in registration order."""
        for callback in list(self._callbacks[event]):
            result = callback(record, **context)
            if inspect.isawaitable(result):
                await result


def _as_path(value: Iterable[int] | NodePath) -> NodePath:
    return value if isinstance(value, NodePath) else NodePath(value)


class TreeMutator:
    """Path assignment, relocation and removal for one TreeStore.

    Example:
        >>> store = MemoryTreeStore(scope_key="account_id")
        >>> tree = TreeMutator(store)
        >>> first = await tree.create(TreeNode(account_id=1))      # path 1
        >>> second = await tree.create(TreeNode(account_id=1))     # path 2
        >>> child = await tree.create(TreeNode([1, 1], account_id=1))
        >>> await tree.destroy(first)                              # child outdents to 1
    """

    def __init__(
        self,
        store: TreeStore,
        *,
        settings: TreeSettings | None = None,
        hooks: MutationHooks | None = None,
    ) -> None:
        """Initialize mutator.

        Args:
            store: Storage collaborator holding the forest
            settings: Tree settings (defaults to the cached settings)
            hooks: Shared hook registry (a fresh one by default)
        """
        if settings is None:
            from reftree.core.settings import get_tree_settings

            settings = get_tree_settings()
        self.store = store
        self.settings = settings
        self.navigator = TreeNavigator(store)
        self.hooks = hooks or MutationHooks()

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def state_of(self, record: Any) -> NodeState:
        """Lifecycle state of the record."""
        return self.store.state_of(record)

    def _begin(self, transition: Transition, record: Any) -> TreeScope:
        allowed, _ = _TRANSITIONS[transition]
        state = self.store.state_of(record)
        if state not in allowed:
            if state is NodeState.REMOVED:
                raise NotFoundError(type(record).__name__, {"id": record.id})
            raise InvalidTransitionError(transition.value, state.value)
        return self.store.scope_for(record)

    async def _verify(self, scope: TreeScope, operation: str) -> None:
        if not self.settings.verify_mutations:
            return
        problems = await find_problems(self.store, scope)
        if not problems.ok:
            logger.error(
                "Tree left inconsistent by mutation",
                extra={"operation": operation, "scope": scope.describe(), "problems": problems.summary()},
            )
            raise TreeIntegrityError(f"{operation} left the tree inconsistent: {problems.summary()}")

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(self, record: Any, path: Iterable[int] | NodePath | None = None) -> Any:
        """Place a new record in its scope and persist it.

        Without a path (argument or preset on the record) the record is
        appended as the new last root. With a path, every record at that
        position or later among the same siblings, together with its
        subtree, moves one rank down to make room.

        Args:
            record: Unassigned record carrying its scope value
            path: Requested position

        Returns:
            The persisted record

        Raises:
            InvalidTransitionError: If the record is already placed
        """
        scope = self._begin(Transition.CREATE, record)
        await self.hooks.run(MutationEvent.BEFORE_CREATE, record, scope=scope)

        requested = path if path is not None else record.path
        if requested is None:
            new_path = await self.navigator.next_root_path(scope)
        else:
            new_path = _as_path(requested)
            if new_path.depth > 1 and not await self.store.count(
                path_query(new_path.parent_path, scope=scope, depth=new_path.depth - 1)
            ):
                raise InvalidPathError(
                    f"Cannot create at {new_path.format()}: no record at {new_path.parent_path.format()}",
                    path=new_path.format(),
                )
            new_path = await self._make_room(new_path, scope)

        record.path = new_path
        await self.store.add(record)

        logger.info(
            "Tree node created",
            extra={"operation": "tree.create", "scope": scope.describe(), "path": new_path.format()},
        )
        await self._verify(scope, "tree.create")
        await self.hooks.run(MutationEvent.AFTER_CREATE, record, scope=scope)
        return record

    async def _make_room(self, path: NodePath, scope: TreeScope, *, exclude_id: Any = None) -> NodePath:
        """Shift siblings at ``path`` and later down one rank.

        A position past the end of the sibling run is clamped to the
        append slot so sibling ranks stay contiguous.
        """
        if not path:
            raise InvalidPathError("Cannot place a record at the empty path")

        siblings = await self.store.count(
            path_query(path.parent_path, scope=scope, depth=path.depth, exclude_id=exclude_id)
        )
        if path.last > siblings + 1:
            _lazy.debug(lambda: f"tree.make_room: clamping {path} to rank {siblings + 1}")
            path = path.sibling(siblings + 1)

        shift = path_query(
            path.parent_path,
            scope=scope,
            depth=path.depth,
            depth_op=DepthOp.GE,
            exclude_id=exclude_id,
            component_ge=path.last,
        )
        shifted = await self.store.increment_component(shift, level=path.depth - 1, delta=1)
        _lazy.debug(lambda: f"tree.make_room: {shifted} records shifted for {path}")
        return path

    # ------------------------------------------------------------------
    # Relocate
    # ------------------------------------------------------------------

    async def relocate(self, record: Any, path: Iterable[int] | NodePath) -> Any:
        """Move a placed record to ``path``.

        The target is read in the numbering the tree has once the record
        has left its old position. The record's old descendants stay
        behind (see module docs). Ends with a full renumbering pass.

        Args:
            record: Placed record
            path: Target position

        Returns:
            The relocated record

        Raises:
            InvalidPathError: If the target's parent position is empty
            NotFoundError: If the record was removed
        """
        target = _as_path(path)
        if target == record.path:
            _lazy.debug(lambda: f"tree.relocate: id={record.id} already at {target}")
            return record
        return await self._relocate(record, lambda post_paths: target)

    async def move_to_parent(self, record: Any, parent: Any) -> Any:
        """Relocate the record to become the last child of ``parent``."""
        if parent is record or (record.id is not None and parent.id == record.id):
            raise InvalidPathError("A record cannot become its own child", path=str(record.path))

        def last_child_slot(post_paths: Mapping[Any, NodePath]) -> NodePath:
            parent_path = post_paths.get(parent.id)
            if parent_path is None:
                raise InvalidPathError("Parent is not placed in the record's tree", path=str(parent.path))
            ranks = [
                p.last
                for rid, p in post_paths.items()
                if rid != record.id and p.depth == parent_path.depth + 1 and parent_path.is_prefix_of(p)
            ]
            return parent_path.child(max(ranks, default=0) + 1)

        return await self._relocate(record, last_child_slot)

    async def _relocate(
        self,
        record: Any,
        resolve_target: Callable[[Mapping[Any, NodePath]], NodePath],
    ) -> Any:
        scope = self._begin(Transition.RELOCATE, record)
        await self.hooks.run(MutationEvent.BEFORE_RELOCATE, record, scope=scope)
        old_path = record.path

        # Plan the detach without writing: the rest of the scope renumbered
        # as if the record were gone.
        overrides = await self._orphan_overrides(record)
        others = [r for r in await self.store.find(path_query(scope=scope)) if r.id != record.id]
        detach_plan = plan_renumber(others, overrides)
        planned = {r.id: p for r, p in detach_plan}
        post_paths = {r.id: planned.get(r.id, r.path) for r in others}

        target = resolve_target(post_paths)
        occupied = set(post_paths.values())
        if target.depth > 1 and target.parent_path not in occupied:
            raise InvalidPathError(
                f"Cannot move to {target.format()}: no record at {target.parent_path.format()}",
                path=target.format(),
            )

        for other, new_path in detach_plan:
            await self.store.write_path(other, new_path)
        target = await self._make_room(target, scope, exclude_id=record.id)
        await self.store.write_path(record, target)
        result = await renumber_tree(self.store, scope, settings=self.settings)

        logger.info(
            "Tree node relocated",
            extra={
                "operation": "tree.relocate",
                "scope": scope.describe(),
                "old_path": old_path.format(),
                "path": record.path.format(),
                "renumbered": result.updated + len(detach_plan),
            },
        )
        await self._verify(scope, "tree.relocate")
        await self.hooks.run(MutationEvent.AFTER_RELOCATE, record, scope=scope, old_path=old_path)
        return record

    async def assign_parent(self, record: Any, parent: Any) -> NodePath:
        """Compute the path making ``record`` the parent's last child.

        Unassigned records get the path set on them directly (ready for
        ``create``); placed records are left untouched, pass the result to
        ``relocate`` or use ``move_to_parent``.

        Returns:
            Parent path plus rank (last child rank + 1, or 1)
        """
        path = await self.navigator.next_child_path(parent)
        if self.store.state_of(record) is NodeState.UNASSIGNED:
            record.path = path
        return path

    # ------------------------------------------------------------------
    # Destroy
    # ------------------------------------------------------------------

    async def _orphan_overrides(self, record: Any) -> dict[Any, int]:
        """Depths for descendants left behind when the record leaves.

        Without a previous sibling to adopt them, the descendants would
        follow the record's parent by two levels, so they outdent by one.
        """
        descendants = await self.navigator.descendants(record)
        if not descendants or await self.navigator.has_previous_sibling(record):
            return {}
        return {d.id: d.depth - 1 for d in descendants}

    async def destroy(self, record: Any) -> RenumberResult:
        """Remove the record, keeping its descendants.

        Returns:
            RenumberResult of the repair pass

        Raises:
            NotFoundError: If the record was already removed
        """
        scope = self._begin(Transition.DESTROY, record)
        await self.hooks.run(MutationEvent.BEFORE_DESTROY, record, scope=scope, cascade=False)
        old_path = record.path

        overrides = await self._orphan_overrides(record)
        await self.store.remove(record)
        result = await renumber_tree(self.store, scope, depth_overrides=overrides, settings=self.settings)

        logger.info(
            "Tree node destroyed",
            extra={
                "operation": "tree.destroy",
                "scope": scope.describe(),
                "path": old_path.format(),
                "outdented": len(overrides),
                "renumbered": result.updated,
            },
        )
        await self._verify(scope, "tree.destroy")
        await self.hooks.run(MutationEvent.AFTER_DESTROY, record, scope=scope, cascade=False)
        return result

    async def destroy_with_children(self, record: Any) -> int:
        """Remove the record and its whole subtree, then renumber once.

        Returns:
            Number of records removed (the record included)
        """
        scope = self._begin(Transition.DESTROY, record)
        await self.hooks.run(MutationEvent.BEFORE_DESTROY, record, scope=scope, cascade=True)
        old_path = record.path

        removed = await self._remove_subtree(record)
        result = await renumber_tree(self.store, scope, settings=self.settings)

        logger.info(
            "Tree subtree destroyed",
            extra={
                "operation": "tree.destroy_with_children",
                "scope": scope.describe(),
                "path": old_path.format(),
                "removed": removed,
                "renumbered": result.updated,
            },
        )
        await self._verify(scope, "tree.destroy_with_children")
        await self.hooks.run(MutationEvent.AFTER_DESTROY, record, scope=scope, cascade=True)
        return removed

    async def _remove_subtree(self, record: Any) -> int:
        descendants: Sequence[Any] = await self.navigator.descendants(record)
        # Reverse pre-order removes every child before its parent.
        for descendant in reversed(descendants):
            await self.store.remove(descendant)
        await self.store.remove(record)
        return len(descendants) + 1

    # ------------------------------------------------------------------
    # Bypass and repair
    # ------------------------------------------------------------------

    async def set_path(self, record: Any, path: Iterable[int] | NodePath) -> None:
        """Write path and depth without shifting or renumbering anything.

        Meant for bulk/manual renumbering. Siblings and descendants are not
        touched, so careless use can leave gaps or duplicates; run
        ``renumber`` afterwards if in doubt.
        """
        new_path = _as_path(path)
        self._begin(Transition.RELOCATE, record)
        await self.store.write_path_and_depth(record, new_path, new_path.depth)
        _lazy.debug(lambda: f"tree.set_path: id={record.id} -> {new_path}")

    async def renumber(self, scope: TreeScope) -> RenumberResult:
        """Run a full renumbering pass over the scope."""
        result = await renumber_tree(self.store, scope, settings=self.settings)
        await self._verify(scope, "tree.renumber")
        return result


__all__ = [
    "MutationEvent",
    "MutationHooks",
    "Transition",
    "TreeMutator",
]
