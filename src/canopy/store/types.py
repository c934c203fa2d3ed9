"""Result types: ItemInfo, ListResult, DeleteResult, ShareResult, etc."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from canopy.models.items import LifecycleState

if TYPE_CHECKING:
    from datetime import datetime

    from canopy.models.items import MediaType


@dataclass
class OwnerSummary:
    """Public profile fields of a user."""

    email: str
    name: str
    image: str | None = None


@dataclass
class GrantInfo:
    """A share grant on an item, with the grantee's profile."""

    id: str
    owner_id: str
    user_id: str
    item_id: str
    user: OwnerSummary | None = None
    created_at: datetime | None = None


@dataclass
class ItemInfo:
    """File/folder metadata."""

    id: str
    owner_id: str
    name: str
    is_folder: bool
    size: int
    state: LifecycleState
    preview_url: str
    parent_id: str | None = None
    media: str | None = None
    media_type: MediaType | None = None
    is_private: bool = False
    is_starred: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    trashed_at: datetime | None = None
    owner: OwnerSummary | None = None
    child_count: int | None = None
    shared_with: list[GrantInfo] = field(default_factory=list)

    @property
    def is_trash(self) -> bool:
        return self.state == LifecycleState.TRASHED


@dataclass
class ListResult:
    """Result of a listing or filtered query."""

    message: str
    items: list[ItemInfo] = field(default_factory=list)
    parent_id: str | None = None


@dataclass
class MutationResult:
    """Result of an edit, trash, or restore."""

    message: str
    item_id: str
    changed: bool = True


@dataclass
class StarResult:
    """Result of a star toggle."""

    message: str
    item_id: str
    starred: bool


@dataclass
class ShareResult:
    """Result of a share toggle."""

    message: str
    item_id: str
    user_id: str
    shared: bool
    grant: GrantInfo | None = None


@dataclass
class DeleteResult:
    """Result of a permanent delete.

    ``released_blobs`` lists the blob locators of every deleted file; folders
    contribute none.
    """

    message: str
    item_id: str | None = None
    deleted_ids: list[str] = field(default_factory=list)
    released_blobs: list[str] = field(default_factory=list)
    size: int = 0

    @property
    def total_deleted(self) -> int:
        return len(self.deleted_ids)


@dataclass
class CountSummary:
    """Per-owner counts taken from a single snapshot."""

    folders: int = 0
    files: int = 0
    private: int = 0
    shared_by_user: int = 0
    shared_with_user: int = 0

    def entries(self) -> list[dict[str, int | str]]:
        """Labelled counts in display order."""
        return [
            {"name": "Folder", "count": self.folders},
            {"name": "File", "count": self.files},
            {"name": "Private", "count": self.private},
            {"name": "Shared by You", "count": self.shared_by_user},
            {"name": "Shared with You", "count": self.shared_with_user},
        ]


@dataclass
class SizeMismatch:
    """A folder whose recorded size disagrees with its children."""

    item_id: str
    recorded: int
    expected: int
