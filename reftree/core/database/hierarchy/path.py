"""Materialized path value type with navigation utilities.

A node's position in an ordered forest is stored as a sequence of positive
integers: one component per level, each being the node's rank among its
siblings. For example:
- (1,)       first root
- (1, 2)     second child of the first root
- (2, 1, 3)  third child of the first child of the second root

This wrapper provides Python-side path arithmetic without requiring database
queries. Paths order element-wise, with a prefix sorting before every one of
its extensions, so sorting by path yields a pre-order traversal.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from reftree.core.database.exceptions import InvalidPathError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from typing import Self

# Fixed width of one component inside a store key. Equal-width zero-padded
# components make byte-wise string order match integer tuple order.
KEY_WIDTH = 8
KEY_SEPARATOR = "."
MAX_COMPONENT = 10**KEY_WIDTH - 1


class NodePath:
    """Immutable materialized path.

    Example:
        >>> path = NodePath([1, 2, 3])
        >>> path.depth
        3
        >>> path.parent
        NodePath(1.2)
        >>> path.is_ancestor_of([1, 2, 3, 1])
        True
        >>> path.is_ancestor_of([1, 2, 4])
        False
        >>> path.format()
        '1.2.3'
        >>> sorted([NodePath([2]), NodePath([1, 5]), NodePath([1])])
        [NodePath(1), NodePath(1.5), NodePath(2)]

    Note:
        - Components must be integers >= 1
        - The empty path is valid and stands for "above the roots"
        - Components are capped at MAX_COMPONENT so they fit the store key
    """

    __slots__ = ("_components",)
    _components: tuple[int, ...]

    def __init__(self, components: Iterable[int] | NodePath = ()) -> None:
        """Initialize NodePath from an iterable of ints or another NodePath.

        Args:
            components: Path components, root first

        Raises:
            InvalidPathError: If any component is not a positive integer
        """
        if isinstance(components, NodePath):
            self._components = components._components
            return
        if isinstance(components, str):
            raise InvalidPathError("Use NodePath.parse() for string paths", path=components)
        self._components = tuple(components)
        self._validate()

    def _validate(self) -> None:
        for component in self._components:
            if isinstance(component, bool) or not isinstance(component, int):
                raise InvalidPathError(
                    f"Invalid path component: {component!r}. Components must be integers.",
                    path=self._components,
                )
            if component < 1 or component > MAX_COMPONENT:
                raise InvalidPathError(
                    f"Invalid path component: {component}. "
                    f"Components must be between 1 and {MAX_COMPONENT}.",
                    path=self._components,
                )

    @property
    def depth(self) -> int:
        """Number of components (1 for a root, 0 for the empty path)."""
        return len(self._components)

    @property
    def components(self) -> tuple[int, ...]:
        """Path components as a tuple, root first."""
        return self._components

    @property
    def root(self) -> int | None:
        """First component, or None for the empty path."""
        return self._components[0] if self._components else None

    @property
    def last(self) -> int | None:
        """Final component (sibling rank), or None for the empty path.

        Example:
            >>> NodePath([1, 1, 3]).last
            3
        """
        return self._components[-1] if self._components else None

    @property
    def parent_path(self) -> NodePath:
        """Path of the parent position; empty for roots.

        Unlike ``parent`` this never returns None, which makes it usable
        directly as a query prefix for sibling lookups.
        """
        return self.prefix(self.depth - 1) if self._components else NodePath()

    @property
    def parent(self) -> NodePath | None:
        """Parent path (one level up).

        Returns:
            Parent NodePath or None for root/empty paths

        Example:
            >>> NodePath([1, 2, 3]).parent
            NodePath(1.2)
            >>> NodePath([1]).parent is None
            True
        """
        if self.depth <= 1:
            return None
        return self.prefix(self.depth - 1)

    @property
    def ancestors(self) -> list[NodePath]:
        """All ancestor paths from root to parent.

        Example:
            >>> [str(a) for a in NodePath([1, 2, 3]).ancestors]
            ['1', '1.2']
        """
        return [self.prefix(i) for i in range(1, self.depth)]

    @property
    def sort_key(self) -> str:
        """Fixed-width string key whose byte order equals path order.

        Example:
            >>> NodePath([1, 12]).sort_key
            '00000001.00000012'
        """
        return KEY_SEPARATOR.join(f"{c:0{KEY_WIDTH}d}" for c in self._components)

    def prefix(self, n: int) -> NodePath:
        """First ``n`` components as a new path."""
        if n < 0:
            raise InvalidPathError(f"Prefix length must be >= 0, got {n}")
        return self._from_trusted(self._components[:n])

    def child(self, component: int) -> NodePath:
        """Create child path by appending a component.

        Example:
            >>> NodePath([1, 2]).child(4)
            NodePath(1.2.4)
        """
        return NodePath((*self._components, component))

    def sibling(self, component: int) -> NodePath:
        """Create sibling path (same parent, different last component)."""
        return self.parent_path.child(component)

    def with_component(self, index: int, value: int) -> NodePath:
        """Replace the component at ``index`` (0-based).

        Example:
            >>> NodePath([1, 2, 3]).with_component(1, 5)
            NodePath(1.5.3)
        """
        components = list(self._components)
        components[index] = value
        return NodePath(components)

    def is_prefix_of(self, other: Iterable[int] | NodePath) -> bool:
        """Check if this path is a (non-strict) prefix of other."""
        other_path = _coerce(other)
        if self.depth > other_path.depth:
            return False
        return other_path._components[: self.depth] == self._components

    def is_ancestor_of(self, other: Iterable[int] | NodePath) -> bool:
        """Check if this path is a proper ancestor of other.

        Example:
            >>> NodePath([1, 2]).is_ancestor_of([1, 2, 3])
            True
            >>> NodePath([1, 2]).is_ancestor_of([1, 2])
            False
        """
        other_path = _coerce(other)
        if self.depth >= other_path.depth:
            return False
        return other_path._components[: self.depth] == self._components

    def is_descendant_of(self, other: Iterable[int] | NodePath) -> bool:
        """Check if this path is a proper descendant of other."""
        return _coerce(other).is_ancestor_of(self)

    def is_sibling_of(self, other: Iterable[int] | NodePath) -> bool:
        """Check if paths have equal depth and share the same parent.

        A path counts as its own sibling; callers that need to exclude the
        node itself compare identities separately.

        Example:
            >>> NodePath([1, 2, 3]).is_sibling_of([1, 2, 4])
            True
            >>> NodePath([1, 2, 3]).is_sibling_of([1, 3, 3])
            False
        """
        other_path = _coerce(other)
        if self.depth != other_path.depth or self.depth == 0:
            return False
        return self._components[:-1] == other_path._components[:-1]

    def common_ancestor(self, other: Iterable[int] | NodePath) -> NodePath | None:
        """Find the longest shared prefix with another path.

        Example:
            >>> NodePath([1, 2, 3]).common_ancestor([1, 2, 5])
            NodePath(1.2)
            >>> NodePath([1, 2]).common_ancestor([2, 2]) is None
            True
        """
        common: list[int] = []
        for a, b in zip(self._components, _coerce(other)._components, strict=False):
            if a != b:
                break
            common.append(a)
        return self._from_trusted(tuple(common)) if common else None

    def format(self, separator: str = ".") -> str:
        """Render components joined by ``separator``.

        Example:
            >>> NodePath([1, 1, 2, 1]).format()
            '1.1.2.1'
            >>> NodePath([1, 1, 2, 1]).format("/")
            '1/1/2/1'
        """
        return separator.join(str(c) for c in self._components)

    def __iter__(self) -> Iterator[int]:
        """Iterate over components, root first."""
        return iter(self._components)

    def __len__(self) -> int:
        """Return depth (number of components)."""
        return self.depth

    def __getitem__(self, index: int) -> int:
        """Return the component at ``index``."""
        return self._components[index]

    def __str__(self) -> str:
        """Return the dotted display form."""
        return self.format()

    def __repr__(self) -> str:
        """Return debug representation."""
        return f"NodePath({self.format()})"

    def __eq__(self, other: object) -> bool:
        """Check equality with another path, tuple or list."""
        if isinstance(other, NodePath):
            return self._components == other._components
        if isinstance(other, (tuple, list)):
            return self._components == tuple(other)
        return NotImplemented

    def __hash__(self) -> int:
        """Return hash for use in sets/dicts."""
        return hash(self._components)

    def __lt__(self, other: Any) -> bool:
        return self._components < _coerce(other)._components

    def __le__(self, other: Any) -> bool:
        return self._components <= _coerce(other)._components

    def __gt__(self, other: Any) -> bool:
        return self._components > _coerce(other)._components

    def __ge__(self, other: Any) -> bool:
        return self._components >= _coerce(other)._components

    def __bool__(self) -> bool:
        """Return True if path is not empty."""
        return bool(self._components)

    @classmethod
    def _from_trusted(cls, components: tuple[int, ...]) -> Self:
        path = cls.__new__(cls)
        path._components = components
        return path

    @classmethod
    def parse(cls, text: str, separator: str = ".") -> Self:
        """Create path from its display form.

        Args:
            text: Separator-joined components, e.g. "1.2.3"
            separator: Component separator

        Returns:
            New NodePath

        Raises:
            InvalidPathError: If a component is not a positive integer

        Example:
            >>> NodePath.parse("1.2.3")
            NodePath(1.2.3)
        """
        text = text.strip()
        if not text:
            return cls(())
        try:
            return cls(int(part) for part in text.split(separator))
        except ValueError as exc:
            if isinstance(exc, InvalidPathError):
                raise
            raise InvalidPathError(f"Invalid path string: {text!r}", path=text) from exc

    @classmethod
    def from_key(cls, key: str) -> Self:
        """Create path from a store key produced by ``sort_key``."""
        if not key:
            return cls(())
        return cls(int(part) for part in key.split(KEY_SEPARATOR))


def _coerce(value: Iterable[int] | NodePath) -> NodePath:
    return value if isinstance(value, NodePath) else NodePath(value)


__all__ = [
    "KEY_SEPARATOR",
    "KEY_WIDTH",
    "MAX_COMPONENT",
    "NodePath",
]
