"""Canopy: hierarchical file/folder metadata store.

Live folder sizes, trash lifecycle, and private sharing over SQL.
"""

__version__ = "0.1.0"

from canopy._canopy import Canopy
from canopy.models import Item, LifecycleState, MediaType, SharedItem, User
from canopy.store import (
    BlobStore,
    CanopyError,
    ConflictError,
    CountSummary,
    DeleteResult,
    ItemInfo,
    ItemNotFoundError,
    ItemQuery,
    ItemStore,
    ListResult,
    SelfShareRejectedError,
    StorageError,
    StoreConfig,
    UnauthorizedError,
    ValidationFailedError,
)

__all__ = [
    "BlobStore",
    "Canopy",
    "CanopyError",
    "ConflictError",
    "CountSummary",
    "DeleteResult",
    "Item",
    "ItemInfo",
    "ItemNotFoundError",
    "ItemQuery",
    "ItemStore",
    "LifecycleState",
    "ListResult",
    "MediaType",
    "SelfShareRejectedError",
    "SharedItem",
    "StorageError",
    "StoreConfig",
    "UnauthorizedError",
    "User",
    "ValidationFailedError",
    "__version__",
]
