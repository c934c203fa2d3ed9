"""ItemStore — async facade over the item services, one transaction per call.

Usage::

    store = await ItemStore.from_config(StoreConfig.from_env(), blob_store=blobs)
    folder = await store.create_folder(user_id, "Photos")
    await store.create_item(user_id, "a.png", parent_id=folder.id,
                            size=1024, media="blobs/a.png", media_type="IMAGE")
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from canopy.models.items import Item
from canopy.models.shares import SharedItem
from canopy.models.users import User

from .blobs import NullBlobStore, release_blobs
from .config import StoreConfig
from .engine import create_engine, create_session_factory, init_schema
from .exceptions import CanopyError, ConflictError, StorageError, UnauthorizedError
from .metadata import MetadataService
from .operations import create_item, edit_item, toggle_star
from .queries import ItemQuery, QueryService
from .sharing import SharingService
from .sizes import SizeAggregator
from .trash import TrashService
from .types import ListResult
from .users import UserDirectory

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from canopy.models.items import ItemBase, MediaType
    from canopy.models.shares import SharedItemBase
    from canopy.models.users import UserBase

    from .blobs import BlobStore
    from .types import (
        CountSummary,
        DeleteResult,
        ItemInfo,
        MutationResult,
        ShareResult,
        SizeMismatch,
        StarResult,
    )

logger = logging.getLogger(__name__)


class ItemStore:
    """Hierarchical item store with live folder sizes, trash and sharing.

    Holds configuration, the composed stateless services and a session
    factory.  Every public operation takes the authenticated ``owner_id``
    of the caller and runs in exactly one transaction: it either commits
    as a whole or leaves nothing behind.  Blob locators of permanently
    deleted files are released after the commit, best-effort.

    Safe for concurrent use from many tasks; cross-row invariants are
    protected by the database transaction only.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        *,
        blob_store: BlobStore | None = None,
        config: StoreConfig | None = None,
        item_model: type[ItemBase] | None = None,
        share_model: type[SharedItemBase] | None = None,
        user_model: type[UserBase] | None = None,
    ) -> None:
        im: type[ItemBase] = item_model or Item
        sm: type[SharedItemBase] = share_model or SharedItem
        um: type[UserBase] = user_model or User

        self.config = config or StoreConfig()
        self._session_factory = session_factory
        self._blob_store: BlobStore = blob_store or NullBlobStore()
        self._item_model = im
        self._share_model = sm
        self._user_model = um
        self._engine: AsyncEngine | None = None

        # Composed services
        self.metadata = MetadataService(im)
        self.users = UserDirectory(um)
        self.sizes = SizeAggregator(im)
        self.sharing = SharingService(sm, im, self.metadata, self.users)
        self.trash = TrashService(im, self.metadata, self.sizes, self.sharing)
        self.queries = QueryService(im, sm, self.metadata, self.sharing, self.users)

    @classmethod
    async def from_config(
        cls,
        config: StoreConfig | None = None,
        *,
        blob_store: BlobStore | None = None,
    ) -> ItemStore:
        """Create an engine from *config*, ensure the schema, and return a store owning it."""
        config = config or StoreConfig()
        engine = create_engine(config)
        await init_schema(engine)
        store = cls(create_session_factory(engine), blob_store=blob_store, config=config)
        store._engine = engine
        return store

    @property
    def item_model(self) -> type[ItemBase]:
        return self._item_model

    @property
    def share_model(self) -> type[SharedItemBase]:
        return self._share_model

    @property
    def user_model(self) -> type[UserBase]:
        return self._user_model

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Dispose the engine if this store created it."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    async def __aenter__(self) -> ItemStore:
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Session Management (per-operation only)
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        """Yield a session whose work commits on success and rolls back on any error.

        A cancelled caller never reaches the commit; closing the session
        rolls the open transaction back.
        """
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except CanopyError:
            await session.rollback()
            raise
        except IntegrityError as e:
            await session.rollback()
            logger.warning("Integrity violation, transaction rolled back: %s", e.orig)
            raise ConflictError("Conflicting concurrent update") from e
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("Storage failure, transaction rolled back", exc_info=True)
            raise StorageError() from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    @staticmethod
    def _require_owner(owner_id: str | None) -> str:
        """Raise if *owner_id* is missing or blank."""
        if not owner_id or not isinstance(owner_id, str) or not owner_id.strip():
            raise UnauthorizedError()
        return owner_id

    async def _release(self, locators: list[str]) -> None:
        if locators:
            await release_blobs(self._blob_store, locators)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def register_user(
        self,
        email: str,
        name: str,
        *,
        image: str | None = None,
        password_hash: str | None = None,
    ) -> UserBase:
        """Create a user record on behalf of the auth collaborator."""
        async with self._transaction() as session:
            return await self.users.register(
                session, email, name, image=image, password_hash=password_hash
            )

    async def get_user(self, user_id: str) -> UserBase | None:
        async with self._transaction() as session:
            return await self.users.get_user(session, user_id)

    # ------------------------------------------------------------------
    # Creation (size aggregation)
    # ------------------------------------------------------------------

    async def create_item(
        self,
        owner_id: str,
        name: str,
        *,
        size: int,
        media: str,
        media_type: MediaType | str,
        parent_id: str | None = None,
        is_private: bool | None = None,
    ) -> ItemInfo:
        """Create a file, adding its size to every ancestor folder."""
        owner_id = self._require_owner(owner_id)
        async with self._transaction() as session:
            item = await create_item(
                owner_id,
                name,
                session,
                is_folder=False,
                parent_id=parent_id,
                size=size,
                media=media,
                media_type=media_type,
                is_private=is_private,
                metadata=self.metadata,
                sizes=self.sizes,
                item_model=self._item_model,
                max_name_length=self.config.max_name_length,
            )
            return self.metadata.item_to_info(item)

    async def create_folder(
        self,
        owner_id: str,
        name: str,
        *,
        parent_id: str | None = None,
        is_private: bool | None = None,
    ) -> ItemInfo:
        """Create an empty folder. Duplicate names raise ``ConflictError``."""
        owner_id = self._require_owner(owner_id)
        async with self._transaction() as session:
            item = await create_item(
                owner_id,
                name,
                session,
                is_folder=True,
                parent_id=parent_id,
                is_private=is_private,
                metadata=self.metadata,
                sizes=self.sizes,
                item_model=self._item_model,
                folder_name_scope=self.config.folder_name_scope,
                max_name_length=self.config.max_name_length,
            )
            return self.metadata.item_to_info(item)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_item(self, owner_id: str, item_id: str) -> ItemInfo:
        """One non-trashed owned item with its grants."""
        owner_id = self._require_owner(owner_id)
        async with self._transaction() as session:
            return await self.queries.get_item_info(session, owner_id, item_id)

    async def list_children(self, owner_id: str, parent_id: str | None = None) -> ListResult:
        owner_id = self._require_owner(owner_id)
        async with self._transaction() as session:
            return await self.queries.list_children(session, owner_id, parent_id)

    async def query_items(self, owner_id: str, query: ItemQuery) -> ListResult:
        owner_id = self._require_owner(owner_id)
        async with self._transaction() as session:
            return await self.queries.query(session, owner_id, query)

    async def count_summary(self, owner_id: str) -> CountSummary:
        owner_id = self._require_owner(owner_id)
        async with self._transaction() as session:
            return await self.queries.count_summary(session, owner_id)

    async def get_shared_items(self, owner_id: str, folder_id: str | None = None) -> ListResult:
        """Items shared to the caller, or the private children of a visible folder."""
        owner_id = self._require_owner(owner_id)
        async with self._transaction() as session:
            if folder_id:
                items = await self.sharing.shared_in_folder(session, owner_id, folder_id)
            else:
                items = await self.sharing.shared_with_user(session, owner_id)
            infos = await self.queries.describe(session, items)
        return ListResult(
            message=f"Found {len(infos)} item(s)",
            items=infos,
            parent_id=folder_id or None,
        )

    async def list_trash(self, owner_id: str) -> ListResult:
        owner_id = self._require_owner(owner_id)
        async with self._transaction() as session:
            items = await self.trash.list_trash(session, owner_id)
            infos = await self.queries.describe(session, items)
        return ListResult(message=f"Found {len(infos)} items in trash", items=infos)

    # ------------------------------------------------------------------
    # Attribute mutations
    # ------------------------------------------------------------------

    async def edit_item(
        self,
        owner_id: str,
        item_id: str,
        name: str,
        is_private: bool | None = None,
    ) -> MutationResult:
        owner_id = self._require_owner(owner_id)
        async with self._transaction() as session:
            return await edit_item(
                owner_id,
                item_id,
                name,
                session,
                is_private=is_private,
                metadata=self.metadata,
                sharing=self.sharing,
                max_name_length=self.config.max_name_length,
            )

    async def star(self, owner_id: str, item_id: str) -> StarResult:
        owner_id = self._require_owner(owner_id)
        async with self._transaction() as session:
            return await toggle_star(owner_id, item_id, session, metadata=self.metadata)

    async def share(self, owner_id: str, item_id: str, target_user_id: str) -> ShareResult:
        """Toggle a grant for *target_user_id* on a private item."""
        owner_id = self._require_owner(owner_id)
        async with self._transaction() as session:
            return await self.sharing.toggle(session, owner_id, item_id, target_user_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def trash_item(self, owner_id: str, item_id: str) -> MutationResult:
        owner_id = self._require_owner(owner_id)
        async with self._transaction() as session:
            return await self.trash.trash(session, owner_id, item_id)

    async def restore_item(self, owner_id: str, item_id: str) -> MutationResult:
        owner_id = self._require_owner(owner_id)
        async with self._transaction() as session:
            return await self.trash.restore(session, owner_id, item_id)

    async def delete_item(self, owner_id: str, item_id: str) -> DeleteResult:
        """Permanently delete a trashed item and its subtree, then release blobs."""
        owner_id = self._require_owner(owner_id)
        async with self._transaction() as session:
            result = await self.trash.purge(session, owner_id, item_id)
        await self._release(result.released_blobs)
        return result

    async def empty_trash(self, owner_id: str) -> DeleteResult:
        owner_id = self._require_owner(owner_id)
        async with self._transaction() as session:
            result = await self.trash.empty_trash(session, owner_id)
        await self._release(result.released_blobs)
        return result

    # ------------------------------------------------------------------
    # Size invariant maintenance
    # ------------------------------------------------------------------

    async def audit_sizes(self, owner_id: str) -> list[SizeMismatch]:
        owner_id = self._require_owner(owner_id)
        async with self._transaction() as session:
            return await self.sizes.audit(session, owner_id)

    async def rebuild_sizes(self, owner_id: str) -> int:
        owner_id = self._require_owner(owner_id)
        async with self._transaction() as session:
            return await self.sizes.rebuild(session, owner_id)
