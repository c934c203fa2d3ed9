"""Standalone orchestration functions for item mutations.

Each function takes services + models as parameters and works inside the
session it is given.  Nothing here commits: the caller owns the
transaction, so a failure anywhere leaves no partial state behind.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from canopy.models.items import MediaType

from .exceptions import ConflictError, ValidationFailedError
from .types import MutationResult, StarResult

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from canopy.models.items import ItemBase

    from .metadata import MetadataService
    from .sharing import SharingService
    from .sizes import SizeAggregator

logger = logging.getLogger(__name__)

DEFAULT_MAX_NAME_LENGTH = 255


def validate_name(name: str | None, max_length: int = DEFAULT_MAX_NAME_LENGTH) -> str:
    """Return the stripped *name* or raise ``ValidationFailedError``."""
    if name is None or not isinstance(name, str) or not name.strip():
        raise ValidationFailedError("Required fields are missing")
    name = name.strip()
    if len(name) > max_length:
        raise ValidationFailedError(f"Name is too long (max {max_length} characters)")
    if "\0" in name:
        raise ValidationFailedError("Name contains invalid characters")
    return name


def validate_size(size: object) -> int:
    """Return *size* as a non-negative byte count or raise ``ValidationFailedError``."""
    if size is None or isinstance(size, bool) or not isinstance(size, int):
        raise ValidationFailedError("Required fields are missing")
    if size < 0:
        raise ValidationFailedError("Size must not be negative")
    return size


async def create_item(
    owner_id: str,
    name: str | None,
    session: AsyncSession,
    *,
    is_folder: bool,
    parent_id: str | None = None,
    size: int | None = None,
    media: str | None = None,
    media_type: MediaType | str | None = None,
    is_private: bool | None = None,
    metadata: MetadataService,
    sizes: SizeAggregator,
    item_model: type[ItemBase],
    folder_name_scope: str = "owner",
    max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
) -> ItemBase:
    """Orchestrate a creation: validate → check parent → insert → propagate size.

    Files need ``media``, ``media_type`` and ``size``; folders start empty.
    When *is_private* is ``None`` the item inherits the parent folder's
    privacy (public at the root).
    """
    name = validate_name(name, max_length=max_name_length)

    if is_folder:
        byte_size = 0
        media = None
        parsed_type: MediaType | None = None
        if await metadata.name_taken(
            session,
            owner_id,
            name,
            parent_id=parent_id or None,
            siblings_only=folder_name_scope == "parent",
        ):
            raise ConflictError()
    else:
        if not media or media_type is None or media_type == "":
            raise ValidationFailedError("Required fields are missing")
        byte_size = validate_size(size)
        parsed_type = MediaType.parse(media_type)

    parent = None
    if parent_id:
        parent = await metadata.get_active_folder(session, owner_id, parent_id, for_update=True)

    if is_private is None:
        is_private = parent.is_private if parent is not None else False

    item = item_model(
        owner_id=owner_id,
        parent_id=parent.id if parent is not None else None,
        is_folder=is_folder,
        name=name,
        media=media,
        media_type=parsed_type,
        size=byte_size,
        is_private=bool(is_private),
    )
    session.add(item)
    await session.flush()

    if parent is not None:
        await sizes.propagate(session, parent.id, byte_size)

    logger.info(
        "Created %s %s for %s under %s",
        "folder" if is_folder else "file",
        item.id,
        owner_id,
        item.parent_id or "root",
    )
    return item


async def edit_item(
    owner_id: str,
    item_id: str,
    name: str | None,
    session: AsyncSession,
    *,
    is_private: bool | None = None,
    metadata: MetadataService,
    sharing: SharingService,
    max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
) -> MutationResult:
    """Rename and/or change privacy. A no-op when nothing changes.

    Making an item public drops all of its grants.
    """
    name = validate_name(name, max_length=max_name_length)
    item = await metadata.get_owned(session, owner_id, item_id, for_update=True)

    new_private = item.is_private if is_private is None else bool(is_private)
    if item.name == name and item.is_private == new_private:
        return MutationResult(message="Item updated", item_id=item.id, changed=False)

    if item.is_private and not new_private:
        removed = await sharing.remove_grants(session, [item.id])
        if removed:
            logger.info("Item %s made public; removed %d grant(s)", item.id, removed)

    item.name = name
    item.is_private = new_private
    item.updated_at = datetime.now(UTC)
    await session.flush()
    return MutationResult(message="Item updated", item_id=item.id)


async def toggle_star(
    owner_id: str,
    item_id: str,
    session: AsyncSession,
    *,
    metadata: MetadataService,
) -> StarResult:
    """Flip the starred flag of an owned item."""
    item = await metadata.get_owned(session, owner_id, item_id, for_update=True)
    item.is_starred = not item.is_starred
    item.updated_at = datetime.now(UTC)
    await session.flush()
    return StarResult(
        message="Item starred" if item.is_starred else "Item unstarred",
        item_id=item.id,
        starred=item.is_starred,
    )
