"""SharingService — grant toggling and visibility resolution.

Stateless service that receives the grant model at construction
and a session at call time, following the MetadataService pattern.

An item is visible to a user when the user owns it, or when the item is
private and a grant names the user.  Grants only ever exist on private
items.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete as sa_delete
from sqlmodel import select

from canopy.models.items import LifecycleState

from .exceptions import ItemNotFoundError, SelfShareRejectedError, ValidationFailedError
from .types import GrantInfo, ShareResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from canopy.models.items import ItemBase
    from canopy.models.shares import SharedItemBase

    from .metadata import MetadataService
    from .types import OwnerSummary
    from .users import UserDirectory

logger = logging.getLogger(__name__)


class SharingService:
    """Manages grants on private items.

    Constructor receives the concrete grant model so callers can use
    custom SQLModel subclasses with different table names.
    """

    def __init__(
        self,
        share_model: type[SharedItemBase],
        item_model: type[ItemBase],
        metadata: MetadataService,
        users: UserDirectory,
    ) -> None:
        self._share_model = share_model
        self._item_model = item_model
        self._metadata = metadata
        self._users = users

    async def get_grant(
        self,
        session: AsyncSession,
        item_id: str,
        user_id: str,
    ) -> SharedItemBase | None:
        model = self._share_model
        result = await session.execute(
            select(model).where(model.item_id == item_id, model.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def toggle(
        self,
        session: AsyncSession,
        owner_id: str,
        item_id: str,
        target_user_id: str | None,
    ) -> ShareResult:
        """Create the grant if absent, remove it if present. Flushes but does not commit.

        The item must be owned by *owner_id*, private and not trashed.
        """
        if not target_user_id:
            raise ValidationFailedError("Required field is missing")
        if target_user_id == owner_id:
            raise SelfShareRejectedError()

        item = await self._metadata.get_owned(
            session, owner_id, item_id, state=LifecycleState.ACTIVE, for_update=True
        )
        if not item.is_private:
            raise ItemNotFoundError()
        if not await self._users.exists(session, target_user_id):
            raise ItemNotFoundError("User not found")

        existing = await self.get_grant(session, item.id, target_user_id)
        if existing is not None:
            await session.delete(existing)
            await session.flush()
            logger.info("Item %s unshared from %s", item.id, target_user_id)
            return ShareResult(
                message="Item is unshared",
                item_id=item.id,
                user_id=target_user_id,
                shared=False,
            )

        grant = self._share_model(owner_id=owner_id, user_id=target_user_id, item_id=item.id)
        session.add(grant)
        await session.flush()
        logger.info("Item %s shared with %s", item.id, target_user_id)
        return ShareResult(
            message="Item is shared",
            item_id=item.id,
            user_id=target_user_id,
            shared=True,
            grant=self.grant_to_info(grant),
        )

    async def remove_grants(self, session: AsyncSession, item_ids: Iterable[str]) -> int:
        """Delete every grant on *item_ids*. Returns the number removed."""
        ids = list(item_ids)
        if not ids:
            return 0
        model = self._share_model
        result = await session.execute(
            sa_delete(model).where(model.item_id.in_(ids))  # type: ignore[union-attr]
        )
        return result.rowcount or 0

    async def grants_for_item(self, session: AsyncSession, item_id: str) -> list[GrantInfo]:
        """List the grants on an item with each grantee's public profile."""
        model = self._share_model
        result = await session.execute(
            select(model).where(model.item_id == item_id).order_by(model.created_at)
        )
        grants = list(result.scalars().all())
        profiles = await self._users.get_profiles(session, (g.user_id for g in grants))
        return [self.grant_to_info(g, profiles.get(g.user_id)) for g in grants]

    async def is_visible(self, session: AsyncSession, item: ItemBase, user_id: str) -> bool:
        """True when *user_id* owns *item* or holds a grant on it while it is private."""
        if item.owner_id == user_id:
            return True
        if not item.is_private:
            return False
        return await self.get_grant(session, item.id, user_id) is not None

    async def shared_with_user(self, session: AsyncSession, user_id: str) -> list[ItemBase]:
        """Private, non-trashed items of any owner that carry a grant for *user_id*."""
        items = self._item_model
        grants = self._share_model
        result = await session.execute(
            select(items)
            .where(
                items.id.in_(  # type: ignore[union-attr]
                    select(grants.item_id).where(grants.user_id == user_id)
                ),
                items.is_private.is_(True),  # type: ignore[union-attr]
                items.state == LifecycleState.ACTIVE,
            )
            .order_by(items.created_at, items.id)
        )
        return list(result.scalars().all())

    async def shared_in_folder(
        self,
        session: AsyncSession,
        user_id: str,
        folder_id: str,
    ) -> list[ItemBase]:
        """Private, non-trashed direct children of a folder visible to *user_id*."""
        folder = await self._metadata.get_item(session, folder_id)
        if (
            folder is None
            or not folder.is_folder
            or folder.state != LifecycleState.ACTIVE
            or not await self.is_visible(session, folder, user_id)
        ):
            raise ItemNotFoundError("Folder not found")

        items = self._item_model
        result = await session.execute(
            select(items)
            .where(
                items.parent_id == folder.id,
                items.is_private.is_(True),  # type: ignore[union-attr]
                items.state == LifecycleState.ACTIVE,
            )
            .order_by(items.is_folder.desc(), items.created_at, items.id)  # type: ignore[union-attr]
        )
        return list(result.scalars().all())

    @staticmethod
    def grant_to_info(grant: SharedItemBase, user: OwnerSummary | None = None) -> GrantInfo:
        """Convert a grant record to GrantInfo."""
        return GrantInfo(
            id=grant.id,
            owner_id=grant.owner_id,
            user_id=grant.user_id,
            item_id=grant.item_id,
            user=user,
            created_at=grant.created_at,
        )
