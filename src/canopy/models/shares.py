"""SharedItem model — grants making a private item visible to another user.

Provides ``SharedItemBase`` (non-table) and ``SharedItem`` (concrete table).
Subclass ``SharedItemBase`` with ``table=True`` and a custom ``__tablename__``
to use a different table name per backend.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


class SharedItemBase(SQLModel):
    """Base fields for a grant record. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    owner_id: str = Field(index=True)
    user_id: str = Field(index=True)
    item_id: str = Field(index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class SharedItem(SharedItemBase, table=True):
    """Default grant table — ``canopy_shared_items``."""

    __tablename__ = "canopy_shared_items"
    __table_args__ = (UniqueConstraint("item_id", "user_id", name="uq_shared_item_user"),)
