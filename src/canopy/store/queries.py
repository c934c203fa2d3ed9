"""QueryService — listings, filtered views, item detail and counts.

All reads run inside the caller's session and take no locks.  Folder sizes
may lag a creation or delete that commits concurrently, by at most that
one transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import func
from sqlmodel import select

from canopy.models.items import LifecycleState, MediaType

from .exceptions import ValidationFailedError
from .types import CountSummary, ListResult

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

    from canopy.models.items import ItemBase
    from canopy.models.shares import SharedItemBase

    from .metadata import MetadataService
    from .sharing import SharingService
    from .types import ItemInfo
    from .users import UserDirectory

logger = logging.getLogger(__name__)


class ItemFilter(str, Enum):
    """The mutually exclusive views offered by ``QueryService.query``."""

    TYPE = "type"
    STARRED = "starred"
    SHARED = "shared"
    PRIVATE = "private"
    TRASHED = "trashed"


def _flag(params: Mapping[str, str], key: str) -> bool:
    return str(params.get(key, "")).strip().lower() == "true"


@dataclass
class ItemQuery:
    """Filter for ``QueryService.query``. Exactly one view must be selected."""

    by_type: bool = False
    media_type: MediaType | str | None = None
    starred: bool = False
    shared: bool = False
    private: bool = False
    trashed: bool = False

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> ItemQuery:
        """Parse query-string parameters (``type=true&mediaType=PDF`` etc.)."""
        return cls(
            by_type=_flag(params, "type"),
            media_type=params.get("mediaType") or None,
            starred=_flag(params, "starred"),
            shared=_flag(params, "shared"),
            private=_flag(params, "isPrivate"),
            trashed=_flag(params, "trashed"),
        )

    def selected(self) -> ItemFilter:
        """Return the single selected view, rejecting none or several."""
        chosen = [
            f
            for f, on in (
                (ItemFilter.TYPE, self.by_type),
                (ItemFilter.STARRED, self.starred),
                (ItemFilter.SHARED, self.shared),
                (ItemFilter.PRIVATE, self.private),
                (ItemFilter.TRASHED, self.trashed),
            )
            if on
        ]
        if len(chosen) != 1:
            raise ValidationFailedError(
                "Exactly one filter must be given",
                details={"filters": [f.value for f in chosen]},
            )
        if chosen[0] == ItemFilter.TYPE and not self.media_type:
            raise ValidationFailedError("mediaType is required when filtering by type")
        return chosen[0]


class QueryService:
    """Read-side views over the item tree."""

    def __init__(
        self,
        item_model: type[ItemBase],
        share_model: type[SharedItemBase],
        metadata: MetadataService,
        sharing: SharingService,
        users: UserDirectory,
    ) -> None:
        self._item_model = item_model
        self._share_model = share_model
        self._metadata = metadata
        self._sharing = sharing
        self._users = users

    async def describe(
        self,
        session: AsyncSession,
        items: list[ItemBase],
        *,
        with_counts: bool = False,
    ) -> list[ItemInfo]:
        """Convert records to ItemInfo with owner summaries and, optionally, child counts."""
        profiles = await self._users.get_profiles(session, (i.owner_id for i in items))
        counts: dict[str, int] = {}
        if with_counts:
            counts = await self._metadata.child_counts(
                session, (i.id for i in items if i.is_folder)
            )
        return [
            self._metadata.item_to_info(
                i,
                owner=profiles.get(i.owner_id),
                child_count=counts.get(i.id, 0) if with_counts and i.is_folder else None,
            )
            for i in items
        ]

    async def list_children(
        self,
        session: AsyncSession,
        owner_id: str,
        parent_id: str | None = None,
    ) -> ListResult:
        """Direct, non-trashed children of a folder (or of the owner's root).

        Folders come first, then creation order, then id.
        """
        model = self._item_model
        conditions = [model.owner_id == owner_id, model.state == LifecycleState.ACTIVE]
        if parent_id:
            folder = await self._metadata.get_active_folder(session, owner_id, parent_id)
            conditions.append(model.parent_id == folder.id)
        else:
            conditions.append(model.parent_id.is_(None))  # type: ignore[union-attr]

        result = await session.execute(
            select(model)
            .where(*conditions)
            .order_by(model.is_folder.desc(), model.created_at, model.id)  # type: ignore[union-attr]
        )
        infos = await self.describe(session, list(result.scalars().all()), with_counts=True)
        return ListResult(
            message=f"Found {len(infos)} item(s)",
            items=infos,
            parent_id=parent_id or None,
        )

    async def query(self, session: AsyncSession, owner_id: str, query: ItemQuery) -> ListResult:
        """Answer one of the exclusive filtered views."""
        view = query.selected()
        model = self._item_model

        if view == ItemFilter.SHARED:
            items = await self._sharing.shared_with_user(session, owner_id)
        else:
            conditions = [model.owner_id == owner_id]
            if view == ItemFilter.TYPE:
                conditions += [
                    model.media_type == MediaType.parse(query.media_type),
                    model.is_folder.is_(False),  # type: ignore[union-attr]
                    model.state == LifecycleState.ACTIVE,
                ]
            elif view == ItemFilter.STARRED:
                conditions += [
                    model.is_starred.is_(True),  # type: ignore[union-attr]
                    model.state == LifecycleState.ACTIVE,
                ]
            elif view == ItemFilter.PRIVATE:
                conditions.append(model.is_private.is_(True))  # type: ignore[union-attr]
            else:
                conditions.append(model.state == LifecycleState.TRASHED)

            result = await session.execute(
                select(model)
                .where(*conditions)
                .order_by(model.is_folder.desc(), model.created_at, model.id)  # type: ignore[union-attr]
            )
            items = list(result.scalars().all())

        logger.debug("Query %s for %s returned %d item(s)", view.value, owner_id, len(items))
        infos = await self.describe(session, items)
        return ListResult(message=f"Found {len(infos)} item(s)", items=infos)

    async def get_item_info(self, session: AsyncSession, owner_id: str, item_id: str) -> ItemInfo:
        """One non-trashed owned item, with its grants and grantee profiles."""
        item = await self._metadata.get_owned(
            session, owner_id, item_id, state=LifecycleState.ACTIVE
        )
        info = (await self.describe(session, [item]))[0]
        info.shared_with = await self._sharing.grants_for_item(session, item.id)
        return info

    async def count_summary(self, session: AsyncSession, owner_id: str) -> CountSummary:
        """Counts of folders, files, private items and grants in one statement."""
        items = self._item_model
        grants = self._share_model

        def _count(model: type, *conditions: Any) -> Any:
            return (
                select(func.count())
                .select_from(model)
                .where(*conditions)
                .scalar_subquery()
            )

        stmt = select(
            _count(items, items.owner_id == owner_id, items.is_folder.is_(True)).label("folders"),  # type: ignore[union-attr]
            _count(items, items.owner_id == owner_id, items.is_folder.is_(False)).label("files"),  # type: ignore[union-attr]
            _count(items, items.owner_id == owner_id, items.is_private.is_(True)).label("private"),  # type: ignore[union-attr]
            _count(grants, grants.owner_id == owner_id).label("shared_by_user"),
            _count(grants, grants.user_id == owner_id).label("shared_with_user"),
        )
        row = (await session.execute(stmt)).one()
        return CountSummary(
            folders=row.folders,
            files=row.files,
            private=row.private,
            shared_by_user=row.shared_by_user,
            shared_with_user=row.shared_with_user,
        )
