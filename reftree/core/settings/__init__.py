"""Pydantic Settings v2 configuration.

Settings are split by domain and read from environment variables (or a
local .env file):
    - TreeSettings (TREE_ prefix): scope key, separator, verification
    - LoggingSettings (LOG_ prefix): level and output format

Import settings via cached loaders:
    from reftree.core.settings import get_tree_settings
"""

from __future__ import annotations

from .loader import get_logging_settings, get_tree_settings
from .logs import LoggingSettings
from .tree import TreeSettings

__all__ = [
    "LoggingSettings",
    "TreeSettings",
    "get_logging_settings",
    "get_tree_settings",
]
