"""Tree behaviour settings.

Environment variables use TREE_ prefix.
Example: TREE_SCOPE_KEY=account_id, TREE_VERIFY_MUTATIONS=true
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TreeSettings(BaseSettings):
    """Materialized-path tree configuration.

    Attributes:
        scope_key: Default scope attribute for stores and models that do not
            declare one. None means the whole collection is one forest.
        separator: Default separator used when formatting paths for display.
        verify_mutations: Check every invariant of the scope after each
            mutation and raise TreeIntegrityError on the first broken one.
        slow_renumber_threshold: Renumber passes scanning more records than
            this are logged at INFO instead of DEBUG.

    Example:
        settings = TreeSettings(scope_key="account_id")
        store = MemoryTreeStore(scope_key=settings.scope_key)
    """

    scope_key: str | None = Field(
        default=None,
        min_length=1,
        max_length=255,
        description="Record attribute partitioning the collection into independent forests",
    )
    separator: str = Field(
        default=".",
        min_length=1,
        max_length=8,
        description="Separator used by formatted paths",
    )
    verify_mutations: bool = Field(
        default=False,
        description="Run an integrity check over the scope after every mutation",
    )
    slow_renumber_threshold: int = Field(
        default=1000,
        ge=1,
        description="Scanned-record count above which renumber passes log at INFO",
    )

    model_config = SettingsConfigDict(
        env_prefix="TREE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
