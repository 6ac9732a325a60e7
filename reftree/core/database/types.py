"""Custom SQLAlchemy column types for tree records.

Types included:
- PathType: materialized path stored as a fixed-width, byte-sortable key
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import String, TypeDecorator, and_, func, or_, type_coerce

from reftree.core.database.exceptions import InvalidPathError
from reftree.core.database.hierarchy.path import KEY_SEPARATOR, KEY_WIDTH, NodePath

if TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.sql.expression import ColumnElement


def _pad(component: int) -> str:
    return f"{component:0{KEY_WIDTH}d}"


class PathType(TypeDecorator[NodePath]):
    """Materialized path column.

    Paths are written as their sort key: every component zero-padded to
    ``KEY_WIDTH`` digits and joined with ``KEY_SEPARATOR``
    (``(1, 12)`` is stored as ``"00000001.00000012"``). Plain string
    ordering of the column is then path order, so ``ORDER BY path`` is a
    pre-order traversal and prefix queries can use a B-tree index.

    Example:
        >>> from reftree.core.database.types import PathType
        >>> from reftree.core.database import Base, IntegerPKMixin
        >>>
        >>> class Page(Base, IntegerPKMixin):
        ...     __tablename__ = "pages"
        ...     path: Mapped[NodePath] = mapped_column(PathType(), index=True)
        >>>
        >>> # Everything below 1.2
        >>> stmt = select(Page).where(Page.path.within([1, 2]))

    Note:
        - PostgreSQL uses the "C" collation so ordering is byte order
        - Values are NodePath instances on read
    """

    impl = String
    cache_ok = True

    def __init__(self, max_length: int = 1024, **kwargs: Any) -> None:
        """Initialize PathType.

        Args:
            max_length: Maximum key length (each level takes KEY_WIDTH + 1)
            **kwargs: Additional TypeDecorator arguments
        """
        super().__init__(**kwargs)
        self.max_length = max_length

    def load_dialect_impl(self, dialect: Dialect) -> Any:
        """Use a byte-ordered collation where the dialect supports one."""
        if dialect.name == "postgresql":
            return dialect.type_descriptor(String(self.max_length, collation="C"))
        return dialect.type_descriptor(String(self.max_length))

    def process_bind_param(self, value: Any, dialect: Dialect) -> str | None:
        """Encode a path to its sort key.

        Raises:
            InvalidPathError: If value is not a valid path or its key is too long
        """
        _ = dialect
        if value is None:
            return None
        path = value if isinstance(value, NodePath) else NodePath(value)
        key = path.sort_key
        if len(key) > self.max_length:
            raise InvalidPathError(
                f"Path {path} exceeds maximum key length of {self.max_length}",
                path=str(path),
            )
        return key

    def process_result_value(self, value: str | None, dialect: Dialect) -> NodePath | None:
        """Decode a sort key back into a NodePath."""
        _ = dialect
        if value is None:
            return None
        return NodePath.from_key(value)

    class comparator_factory(TypeDecorator.Comparator[NodePath]):
        """Key-level operators used to compile path filters."""

        @property
        def raw_key(self) -> ColumnElement[str]:
            """The column as a raw string (no NodePath processing)."""
            return type_coerce(self.expr, String())

        def within(self, prefix: Any) -> ColumnElement[bool]:
            """Path equals ``prefix`` or extends it."""
            path = prefix if isinstance(prefix, NodePath) else NodePath(prefix)
            if not path:
                return self.raw_key.is_not(None)
            key = path.sort_key
            raw = self.raw_key
            return or_(raw == key, raw.like(key + KEY_SEPARATOR + "%"))

        def component(self, index: int) -> ColumnElement[str]:
            """Padded component at 0-based ``index`` (empty past the end)."""
            start = index * (KEY_WIDTH + len(KEY_SEPARATOR)) + 1
            return func.substr(self.raw_key, start, KEY_WIDTH)

        def component_between(
            self,
            index: int,
            *,
            gt: int | None = None,
            lt: int | None = None,
            ge: int | None = None,
        ) -> ColumnElement[bool]:
            """Bounds on the component at ``index``; the component must exist."""
            part = self.component(index)
            clauses = [func.length(self.raw_key) >= (index + 1) * (KEY_WIDTH + len(KEY_SEPARATOR)) - 1]
            if gt is not None:
                clauses.append(part > _pad(gt))
            if lt is not None:
                clauses.append(part < _pad(lt))
            if ge is not None:
                clauses.append(part >= _pad(ge))
            return and_(*clauses)


__all__ = [
    "PathType",
]
