"""Declarative base and primary key mixins for tree models.

Examples:
    Scoped tree model with an integer PK:
    class Page(Base, IntegerPKMixin, ReferencedTreeMixin):
        __tablename__ = "pages"
        __tree_scope__ = "site_id"
        site_id: Mapped[int] = mapped_column(index=True)
        title: Mapped[str] = mapped_column(String(255))
"""

from __future__ import annotations

import uuid

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

# Consistent naming convention for database constraints
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base with constraint naming and automatic table names.

    The automatic table name (class name, lowercased) can be overridden by
    setting __tablename__ explicitly on the model class.
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return cls.__name__.lower()


class IntegerPKMixin:
    """Integer auto-increment primary key.

    Provides:
        id: Auto-incrementing integer primary key
    """

    __allow_unmapped__ = True

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True,
        comment="Auto-incrementing integer primary key",
    )


class UUIDPKMixin:
    """UUID v4 primary key, for trees whose records are referenced externally.

    Provides:
        id: UUID v4 primary key (random)
    """

    __allow_unmapped__ = True

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
        comment="UUID v4 primary key",
    )


__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "IntegerPKMixin",
    "UUIDPKMixin",
]
