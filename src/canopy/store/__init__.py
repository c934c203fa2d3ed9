"""Item store layer — services, facade, configuration, errors."""

from canopy.store.blobs import BlobStore, NullBlobStore, release_blobs
from canopy.store.config import StoreConfig
from canopy.store.engine import create_engine, create_session_factory, get_dialect, init_schema
from canopy.store.exceptions import (
    CanopyError,
    ConflictError,
    ConsistencyError,
    IllegalTransitionError,
    ItemNotFoundError,
    SelfShareRejectedError,
    StorageError,
    UnauthorizedError,
    ValidationFailedError,
)
from canopy.store.item_store import ItemStore
from canopy.store.lifecycle import LifecycleEvent, apply_transition, next_state
from canopy.store.queries import ItemFilter, ItemQuery
from canopy.store.types import (
    CountSummary,
    DeleteResult,
    GrantInfo,
    ItemInfo,
    ListResult,
    MutationResult,
    OwnerSummary,
    ShareResult,
    SizeMismatch,
    StarResult,
)

__all__ = [
    "BlobStore",
    "CanopyError",
    "ConflictError",
    "ConsistencyError",
    "CountSummary",
    "DeleteResult",
    "GrantInfo",
    "IllegalTransitionError",
    "ItemFilter",
    "ItemInfo",
    "ItemNotFoundError",
    "ItemQuery",
    "ItemStore",
    "LifecycleEvent",
    "ListResult",
    "MutationResult",
    "NullBlobStore",
    "OwnerSummary",
    "SelfShareRejectedError",
    "ShareResult",
    "SizeMismatch",
    "StarResult",
    "StorageError",
    "StoreConfig",
    "UnauthorizedError",
    "ValidationFailedError",
    "apply_transition",
    "create_engine",
    "create_session_factory",
    "get_dialect",
    "init_schema",
    "next_state",
    "release_blobs",
]
