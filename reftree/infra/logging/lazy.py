"""Lazy evaluation support for logging.

Expensive log messages (path dumps of whole scopes, filter descriptions)
are only built when the log level is actually enabled. Pass a callable
instead of a string and it is invoked only if the record will be emitted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any


class LazyString:
    """Lazy-evaluated string that defers computation until needed.

    Example:
        ```python
        logger.debug("Paths: %s", LazyString(lambda: dump_paths(records)))
        ```
    """

    __slots__ = ("_func",)

    def __init__(self, func: Callable[[], Any]) -> None:
        """Initialize lazy string.

        Args:
            func: Callable that returns the string value when invoked.
        """
        self._func = func

    def __str__(self) -> str:
        """Evaluate and return string representation."""
        return str(self._func())

    def __repr__(self) -> str:
        """Return representation of lazy string."""
        return f"LazyString({self._func!r})"


class LazyLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that supports lazy evaluation of log messages.

    The inherited level helpers (``debug``, ``info``...) all go through ``log``.

    Example:
        ```python
        logger = LazyLoggerAdapter(logging.getLogger(__name__))
        logger.debug(lambda: f"Renumber plan: {describe(plan)}")
        ```
    """

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        """Merge bound context into ``extra`` without dropping call-site extras."""
        if self.extra:
            kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

    def log(
        self,
        level: int,
        msg: Any,
        *args: Any,
        **kwargs: Any,
    ) -> None:
        """Log message with lazy evaluation support.

        Args:
            level: Numeric log level (e.g., logging.DEBUG).
            msg: Log message or callable returning message.
            *args: Format arguments (may include callables).
            **kwargs: Additional kwargs for logging.
        """
        if not self.isEnabledFor(level):
            return

        if callable(msg):
            msg = msg()

        if args:
            evaluated_args = tuple(arg() if callable(arg) else arg for arg in args)
        else:
            evaluated_args = args

        super().log(level, msg, *evaluated_args, **kwargs)


def get_lazy_logger(name: str, **context: Any) -> LazyLoggerAdapter:
    """Get logger with lazy evaluation support.

    Args:
        name: Logger name (usually __name__).
        **context: Optional context to bind to logger.

    Returns:
        Logger adapter with lazy evaluation support.

    Example:
        ```python
        logger = get_lazy_logger(__name__, component="renumber")
        logger.debug(lambda: f"Plan: {plan}")
        ```
    """
    return LazyLoggerAdapter(logging.getLogger(name), context or {})


def lazy(func: Callable[[], Any]) -> LazyString:
    """Create a lazy-evaluated string.

    Args:
        func: Callable that returns the value when invoked.

    Returns:
        LazyString wrapper.
    """
    return LazyString(func)


__all__ = [
    "LazyLoggerAdapter",
    "LazyString",
    "get_lazy_logger",
    "lazy",
]
