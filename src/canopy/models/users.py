"""User model — identities that own items.

Provides ``UserBase`` (non-table) and ``User`` (concrete table).
Credentials are owned by the auth collaborator; the store only reads the
public profile fields.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class UserBase(SQLModel):
    """Base fields for a user record. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    email: str = Field(index=True, unique=True)
    name: str = Field(default="")
    image: str | None = Field(default=None)
    password_hash: str | None = Field(default=None)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class User(UserBase, table=True):
    """Default user table — ``canopy_users``."""

    __tablename__ = "canopy_users"
