"""MetadataService — item lookup, ownership checks, info conversion."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func
from sqlmodel import select

from canopy.models.items import LifecycleState

from .exceptions import ItemNotFoundError
from .types import ItemInfo

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from canopy.models.items import ItemBase

    from .types import OwnerSummary


class MetadataService:
    """Stateless helpers for item record lookup and conversion.

    Receives the concrete item model at construction so callers can
    use custom SQLModel subclasses.
    """

    def __init__(self, item_model: type[ItemBase]) -> None:
        self._item_model = item_model

    async def get_item(
        self,
        session: AsyncSession,
        item_id: str,
        *,
        for_update: bool = False,
    ) -> ItemBase | None:
        """Get an item by id, re-reading it from storage."""
        model = self._item_model
        query = (
            select(model)
            .where(model.id == item_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def get_owned(
        self,
        session: AsyncSession,
        owner_id: str,
        item_id: str,
        *,
        state: LifecycleState | None = None,
        folder: bool | None = None,
        for_update: bool = False,
        message: str | None = None,
    ) -> ItemBase:
        """Get an item owned by *owner_id*, or raise ``ItemNotFoundError``.

        Absent, foreign, wrong-state and wrong-kind items are indistinguishable
        to the caller.
        """
        item = await self.get_item(session, item_id, for_update=for_update)
        if (
            item is None
            or item.owner_id != owner_id
            or (state is not None and item.state != state)
            or (folder is not None and item.is_folder != folder)
        ):
            raise ItemNotFoundError(message)
        return item

    async def get_active_folder(
        self,
        session: AsyncSession,
        owner_id: str,
        folder_id: str,
        *,
        for_update: bool = False,
    ) -> ItemBase:
        """Get a non-trashed folder owned by *owner_id*."""
        return await self.get_owned(
            session,
            owner_id,
            folder_id,
            state=LifecycleState.ACTIVE,
            folder=True,
            for_update=for_update,
            message="Folder not found",
        )

    async def child_counts(
        self,
        session: AsyncSession,
        parent_ids: Iterable[str],
    ) -> dict[str, int]:
        """Count the non-trashed direct children of each parent."""
        ids = set(parent_ids)
        if not ids:
            return {}
        model = self._item_model
        result = await session.execute(
            select(model.parent_id, func.count())
            .where(
                model.parent_id.in_(ids),  # type: ignore[union-attr]
                model.state == LifecycleState.ACTIVE,
            )
            .group_by(model.parent_id)
        )
        return {parent_id: count for parent_id, count in result.all()}

    async def name_taken(
        self,
        session: AsyncSession,
        owner_id: str,
        name: str,
        *,
        parent_id: str | None = None,
        siblings_only: bool = False,
    ) -> bool:
        """Check whether *owner_id* already has an item called *name*.

        With *siblings_only* only items directly under *parent_id* count.
        """
        model = self._item_model
        query = select(model.id).where(model.owner_id == owner_id, model.name == name)
        if siblings_only:
            if parent_id is None:
                query = query.where(model.parent_id.is_(None))  # type: ignore[union-attr]
            else:
                query = query.where(model.parent_id == parent_id)
        result = await session.execute(query.limit(1))
        return result.first() is not None

    @staticmethod
    def item_to_info(
        item: ItemBase,
        *,
        owner: OwnerSummary | None = None,
        child_count: int | None = None,
    ) -> ItemInfo:
        """Convert an item record to ItemInfo."""
        return ItemInfo(
            id=item.id,
            owner_id=item.owner_id,
            name=item.name,
            is_folder=item.is_folder,
            size=item.size,
            state=item.state,
            preview_url=item.preview_url,
            parent_id=item.parent_id,
            media=item.media,
            media_type=item.media_type,
            is_private=item.is_private,
            is_starred=item.is_starred,
            created_at=item.created_at,
            updated_at=item.updated_at,
            trashed_at=item.trashed_at,
            owner=owner,
            child_count=child_count,
        )
