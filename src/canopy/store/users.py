"""UserDirectory — user registration and public profile lookup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlmodel import select

from .exceptions import ConflictError, ValidationFailedError
from .types import OwnerSummary

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from canopy.models.users import UserBase

logger = logging.getLogger(__name__)


class UserDirectory:
    """Stateless helpers over the user table.

    Credentials are written by the auth collaborator through ``register``;
    nothing here reads them back.
    """

    def __init__(self, user_model: type[UserBase]) -> None:
        self._user_model = user_model

    async def register(
        self,
        session: AsyncSession,
        email: str,
        name: str,
        *,
        image: str | None = None,
        password_hash: str | None = None,
    ) -> UserBase:
        """Create a user. Flushes but does not commit."""
        email = (email or "").strip().lower()
        if not email:
            raise ValidationFailedError("Email is required")

        model = self._user_model
        result = await session.execute(select(model.id).where(model.email == email))
        if result.first() is not None:
            raise ConflictError("Email already registered")

        user = model(email=email, name=name, image=image, password_hash=password_hash)
        session.add(user)
        await session.flush()
        logger.info("Registered user %s", user.id)
        return user

    async def get_user(self, session: AsyncSession, user_id: str) -> UserBase | None:
        model = self._user_model
        result = await session.execute(select(model).where(model.id == user_id))
        return result.scalar_one_or_none()

    async def exists(self, session: AsyncSession, user_id: str) -> bool:
        model = self._user_model
        result = await session.execute(select(model.id).where(model.id == user_id))
        return result.first() is not None

    async def get_profiles(
        self,
        session: AsyncSession,
        user_ids: Iterable[str],
    ) -> dict[str, OwnerSummary]:
        """Map each known user id to its public profile."""
        ids = set(user_ids)
        if not ids:
            return {}
        model = self._user_model
        result = await session.execute(
            select(model.id, model.email, model.name, model.image).where(
                model.id.in_(ids),  # type: ignore[union-attr]
            )
        )
        return {
            row.id: OwnerSummary(email=row.email, name=row.name, image=row.image)
            for row in result.all()
        }
