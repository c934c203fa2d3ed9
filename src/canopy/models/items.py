"""Item model — files and folders in a user's tree.

Provides ``ItemBase`` (non-table) and ``Item`` (concrete table) together
with the ``MediaType`` and ``LifecycleState`` enums.

A folder's ``size`` is an aggregate of its direct children and is only
ever changed through ``SizeAggregator``.  ``state`` holds the lifecycle;
privacy and starring are independent attributes.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import BigInteger, DateTime
from sqlmodel import Field, SQLModel

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class MediaType(str, Enum):
    """Coarse content category of a file."""

    PDF = "PDF"
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    OFFICE = "OFFICE"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: object) -> MediaType:
        """Map *value* to a member; anything unrecognised becomes ``UNKNOWN``."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        return cls.UNKNOWN


class LifecycleState(str, Enum):
    """Availability of an item.

    ``DELETED`` is terminal and never persisted: a deleted item has no row.
    """

    ACTIVE = "active"
    TRASHED = "trashed"
    DELETED = "deleted"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

PREVIEW_TOKEN_BYTES: int = 12


def generate_preview_token() -> str:
    """Return a random hex token used as an item's ``preview_url``."""
    return secrets.token_hex(PREVIEW_TOKEN_BYTES)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class ItemBase(SQLModel):
    """Base fields for a file or folder. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    owner_id: str = Field(index=True)
    parent_id: str | None = Field(default=None, index=True)
    is_folder: bool = Field(default=False)
    name: str = Field(index=True)
    media: str | None = Field(default=None)
    media_type: MediaType | None = Field(default=None)
    size: int = Field(default=0, sa_type=BigInteger)  # type: ignore[invalid-argument-type]
    preview_url: str = Field(default_factory=generate_preview_token)
    is_private: bool = Field(default=False)
    is_starred: bool = Field(default=False)
    state: LifecycleState = Field(default=LifecycleState.ACTIVE, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    trashed_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )

    @property
    def is_trash(self) -> bool:
        return self.state == LifecycleState.TRASHED


class Item(ItemBase, table=True):
    """Default item table — ``canopy_items``."""

    __tablename__ = "canopy_items"
