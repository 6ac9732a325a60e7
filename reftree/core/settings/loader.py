"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the process.

Usage:
    from reftree.core.settings.loader import get_tree_settings

    settings = get_tree_settings()  # First call: loads and validates
    settings = get_tree_settings()  # Subsequent calls: returns cached instance

Testing:
    In tests, clear the cache to force reload:
    get_tree_settings.cache_clear()

    Or pass explicit instances:
    mutator = TreeMutator(store, settings=TreeSettings(verify_mutations=True))
"""

from __future__ import annotations

from functools import lru_cache

from .logs import LoggingSettings
from .tree import TreeSettings


@lru_cache(maxsize=1)
def get_tree_settings() -> TreeSettings:
    """Get cached tree settings.

    Returns:
        Validated and frozen TreeSettings instance.
    """
    return TreeSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()
