"""TrashService — trash, restore, permanent delete, and empty trash.

Trashing and restoring only flip the lifecycle state of the one item:
sizes are left untouched and descendants keep their own state.  A
permanent delete removes the item and its whole subtree, subtracts the
item's size from every ancestor, and drops the grants, all in the
caller's transaction.  Blob locators are returned, not released: the
caller releases them after commit.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete as sa_delete
from sqlmodel import select

from canopy.models.items import LifecycleState

from .exceptions import ConsistencyError, ItemNotFoundError
from .lifecycle import LifecycleEvent, apply_transition
from .types import DeleteResult, MutationResult

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from canopy.models.items import ItemBase

    from .metadata import MetadataService
    from .sharing import SharingService
    from .sizes import SizeAggregator

logger = logging.getLogger(__name__)

DELETE_BATCH_SIZE = 500


class TrashService:
    """Lifecycle transitions for items.

    Depends on ``SizeAggregator`` for ancestor bookkeeping and
    ``SharingService`` for dropping grants of deleted items.
    """

    def __init__(
        self,
        item_model: type[ItemBase],
        metadata: MetadataService,
        sizes: SizeAggregator,
        sharing: SharingService,
    ) -> None:
        self._item_model = item_model
        self._metadata = metadata
        self._sizes = sizes
        self._sharing = sharing

    async def trash(self, session: AsyncSession, owner_id: str, item_id: str) -> MutationResult:
        """ACTIVE -> TRASHED. Flushes but does not commit."""
        item = await self._metadata.get_owned(session, owner_id, item_id, for_update=True)
        apply_transition(item, LifecycleEvent.TRASH)
        await session.flush()
        logger.info("Item %s sent to trash", item.id)
        return MutationResult(message="Item sent to trash", item_id=item.id)

    async def restore(self, session: AsyncSession, owner_id: str, item_id: str) -> MutationResult:
        """TRASHED -> ACTIVE. Flushes but does not commit."""
        item = await self._metadata.get_owned(session, owner_id, item_id, for_update=True)
        apply_transition(item, LifecycleEvent.RESTORE)
        await session.flush()
        logger.info("Item %s restored", item.id)
        return MutationResult(message="Item restored", item_id=item.id)

    async def collect_subtree(
        self, session: AsyncSession, root_id: str, *, for_update: bool = False
    ) -> list[tuple[str, bool, str | None]]:
        """Return ``(id, is_folder, media)`` for every descendant of *root_id*.

        With *for_update* every descendant row is locked as it is read, so a
        creation under one of them waits for the caller's transaction.
        """
        model = self._item_model
        found: list[tuple[str, bool, str | None]] = []
        seen: set[str] = {root_id}
        frontier = [root_id]

        while frontier:
            query = select(model.id, model.is_folder, model.media).where(
                model.parent_id.in_(frontier),  # type: ignore[union-attr]
            )
            if for_update:
                query = query.with_for_update()
            result = await session.execute(query)
            frontier = []
            for child_id, is_folder, media in result.all():
                if child_id in seen:
                    raise ConsistencyError(details={"cycle_at": child_id})
                seen.add(child_id)
                found.append((child_id, is_folder, media))
                if is_folder:
                    frontier.append(child_id)

        return found

    async def _orphans_of(self, session: AsyncSession, parent_ids: list[str]) -> list[str]:
        """Ids of rows still pointing at any of *parent_ids*."""
        model = self._item_model
        orphans: list[str] = []
        for start in range(0, len(parent_ids), DELETE_BATCH_SIZE):
            batch = parent_ids[start : start + DELETE_BATCH_SIZE]
            result = await session.execute(
                select(model.id).where(model.parent_id.in_(batch))  # type: ignore[union-attr]
            )
            orphans.extend(row[0] for row in result.all())
        return orphans

    async def purge(self, session: AsyncSession, owner_id: str, item_id: str) -> DeleteResult:
        """TRASHED -> DELETED, cascading to every descendant. Flushes but does not commit.

        The item and its whole subtree are locked before the item's size is
        read, so the amount subtracted from the ancestors matches what is
        removed.  Raises ``ConsistencyError`` if a row under the deleted
        subtree survives the delete.
        """
        item = await self._metadata.get_owned(session, owner_id, item_id, for_update=True)
        apply_transition(item, LifecycleEvent.PURGE)

        model = self._item_model
        descendants = await self.collect_subtree(session, item.id, for_update=True)
        result = await session.execute(select(model.size).where(model.id == item.id))
        size = result.scalar_one()

        deleted_ids = [item.id] + [d[0] for d in descendants]
        released = [item.media] if not item.is_folder and item.media else []
        released.extend(media for _, is_folder, media in descendants if not is_folder and media)

        if item.parent_id is not None:
            await self._sizes.propagate(session, item.parent_id, -size)

        await self._sharing.remove_grants(session, deleted_ids)

        for start in range(0, len(deleted_ids), DELETE_BATCH_SIZE):
            batch = deleted_ids[start : start + DELETE_BATCH_SIZE]
            await session.execute(
                sa_delete(model).where(model.id.in_(batch))  # type: ignore[union-attr]
            )
        await session.flush()

        orphans = await self._orphans_of(session, deleted_ids)
        if orphans:
            raise ConsistencyError(details={"item_id": item.id, "orphans": orphans})

        logger.info("Item %s permanently deleted (%d record(s))", item.id, len(deleted_ids))
        return DeleteResult(
            message="Item is deleted",
            item_id=item.id,
            deleted_ids=deleted_ids,
            released_blobs=released,
            size=size,
        )

    async def list_trash(self, session: AsyncSession, owner_id: str) -> list[ItemBase]:
        """Trashed items of *owner_id*, most recently trashed first."""
        model = self._item_model
        result = await session.execute(
            select(model)
            .where(model.owner_id == owner_id, model.state == LifecycleState.TRASHED)
            .order_by(model.trashed_at.desc(), model.id)  # type: ignore[union-attr]
        )
        return list(result.scalars().all())

    async def empty_trash(self, session: AsyncSession, owner_id: str) -> DeleteResult:
        """Permanently delete every trashed item of *owner_id*."""
        deleted: list[str] = []
        released: list[str] = []
        total_size = 0
        gone: set[str] = set()

        for item in await self.list_trash(session, owner_id):
            if item.id in gone:
                continue
            try:
                result = await self.purge(session, owner_id, item.id)
            except ItemNotFoundError:
                # Removed by an earlier cascade in this same call
                continue
            gone.update(result.deleted_ids)
            deleted.extend(result.deleted_ids)
            released.extend(result.released_blobs)
            total_size += result.size

        return DeleteResult(
            message=f"Permanently deleted {len(deleted)} items from trash",
            deleted_ids=deleted,
            released_blobs=released,
            size=total_size,
        )
