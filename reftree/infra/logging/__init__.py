"""Logging infrastructure.

Basic usage:
    import logging

    logger = logging.getLogger(__name__)
    logger.info("Tree node created", extra={"operation": "tree.create", "path": "1.2"})

    # Lazy evaluation for expensive operations
    from reftree.infra.logging import get_lazy_logger

    lazy_logger = get_lazy_logger(__name__)
    lazy_logger.debug(lambda: f"Plan: {describe_plan()}")  # Only runs if DEBUG enabled
"""

from reftree.infra.logging.config import configure_logging, setup_logging
from reftree.infra.logging.formatters import JSONFormatter
from reftree.infra.logging.lazy import LazyLoggerAdapter, LazyString, get_lazy_logger, lazy

__all__ = [
    "JSONFormatter",
    "LazyLoggerAdapter",
    "LazyString",
    "configure_logging",
    "get_lazy_logger",
    "lazy",
    "setup_logging",
]
