"""Custom exception hierarchy for the Canopy item store.

Every error carries a stable ``status_code`` and a default message so the
response layer can map it without inspecting internals.  ``NotFound`` is
also raised for items that exist but are not owned by the caller or
are in the wrong lifecycle state.
"""

from __future__ import annotations

from typing import Any


class CanopyError(Exception):
    """Base exception for all Canopy store errors."""

    status_code: int = 500
    default_message: str = "Internal Server Error"

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Response envelope for this error."""
        return {"error": self.message}


class UnauthorizedError(CanopyError):
    """Raised when an operation is attempted without a caller identity."""

    status_code = 401
    default_message = "Unauthorized request"


class ValidationFailedError(CanopyError):
    """Raised on malformed or missing input."""

    status_code = 400
    default_message = "Required fields are missing"


class ItemNotFoundError(CanopyError):
    """Raised when an item is absent, not owned, or in the wrong state."""

    status_code = 404
    default_message = "Item not found"


class IllegalTransitionError(ItemNotFoundError):
    """Raised when a lifecycle transition is not allowed from the current state."""


class ConflictError(CanopyError):
    """Raised on a duplicate name or email."""

    status_code = 409
    default_message = "Folder name already exists"


class SelfShareRejectedError(CanopyError):
    """Raised when an owner tries to share an item with themselves."""

    status_code = 400
    default_message = "You cannot share item to yourself"


class StorageError(CanopyError):
    """Raised on storage backend failures. The message never leaks internals."""


class ConsistencyError(StorageError):
    """Raised when the item tree is corrupt (cycle or dangling parent)."""
