"""Tree exceptions.

Custom exceptions for tree operations that provide better error
messages and typing than raw SQLAlchemy or lookup errors.
"""
from __future__ import annotations

from typing import Any


class TreeError(Exception):
    """Base exception for tree operations.

    Raised when a tree operation fails due to programming errors,
    configuration issues, or unexpected states.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize tree error.

        Args:
            message: Error description
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with details."""
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class NotFoundError(TreeError):
    """Record not found in the store.

    Raised when removing or relocating a record that the store no longer
    holds, e.g. on a double delete.

    Attributes:
        model_name: Name of the record class that wasn't found
        identifier: The key/value that was searched for
    """

    def __init__(self, model_name: str, identifier: dict[str, Any]):
        """Initialize not found error.

        Args:
            model_name: Name of the record class (e.g., "Node")
            identifier: Key-value pairs used in the search (e.g., {"id": 123})
        """
        self.model_name = model_name
        self.identifier = identifier

        id_str = ", ".join(f"{k}={v!r}" for k, v in identifier.items())
        message = f"{model_name} not found with {id_str}"

        super().__init__(message, details={"model": model_name, **identifier})

    def __repr__(self) -> str:
        """Repr for debugging."""
        return f"NotFoundError(model={self.model_name!r}, identifier={self.identifier!r})"


class InvalidPathError(TreeError, ValueError):
    """Malformed path or an impossible target position.

    Raised for non-positive components, components too large for the
    store key, and relocation targets that cannot hold the record.
    """

    def __init__(self, message: str, path: Any = None):
        """Initialize invalid path error.

        Args:
            message: Error description
            path: The offending path value (if applicable)
        """
        details = {"path": path} if path is not None else {}
        super().__init__(message, details=details)


class TreeIntegrityError(TreeError):
    """Stored tree structure breaks an invariant.

    Raised by the renumbering pass when records are not in a valid
    pre-order (a depth jump of more than one level), and by mutation
    verification when a scope ends a mutation in an inconsistent state.

    Attributes:
        record_id: Identifier of the offending record (if known)
        path: Current path of the offending record (if known)
    """

    def __init__(self, message: str, *, record_id: Any = None, path: Any = None):
        """Initialize integrity error.

        Args:
            message: Error description
            record_id: Identifier of the offending record
            path: Path of the offending record
        """
        self.record_id = record_id
        self.path = path
        details: dict[str, Any] = {}
        if record_id is not None:
            details["record_id"] = record_id
        if path is not None:
            details["path"] = str(path)
        super().__init__(message, details=details)


class InvalidTransitionError(TreeError):
    """Mutation not allowed from the record's current lifecycle state.

    Raised e.g. when creating a record that is already placed in a tree.
    """

    def __init__(self, operation: str, state: str):
        """Initialize transition error.

        Args:
            operation: Mutation that was attempted
            state: Lifecycle state the record was in
        """
        self.operation = operation
        self.state = state
        super().__init__(
            f"Cannot {operation} a record in state {state!r}",
            details={"operation": operation, "state": state},
        )


__all__ = [
    "InvalidPathError",
    "InvalidTransitionError",
    "NotFoundError",
    "TreeError",
    "TreeIntegrityError",
]
