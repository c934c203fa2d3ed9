"""Main Canopy class — sync wrappers over the async item store."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any

from canopy.store.config import StoreConfig
from canopy.store.item_store import ItemStore

if TYPE_CHECKING:
    from canopy.models.items import MediaType
    from canopy.models.users import UserBase
    from canopy.store.blobs import BlobStore
    from canopy.store.queries import ItemQuery
    from canopy.store.types import (
        CountSummary,
        DeleteResult,
        ItemInfo,
        ListResult,
        MutationResult,
        ShareResult,
        SizeMismatch,
        StarResult,
    )

logger = logging.getLogger(__name__)


class Canopy:
    """Synchronous facade for thread-per-request callers.

    Presents a blocking API backed by a private event loop in a
    background thread.  The store is async internally; the loop bridges
    the gap so request handlers running on worker threads can call it
    directly.  Calls from many threads are safe: each one is scheduled on
    the loop and runs in its own transaction.

    Usage::

        with Canopy("sqlite+aiosqlite:///drive.db") as c:
            folder = c.create_folder(user_id, "Photos")
            c.create_item(user_id, "cat.png", parent_id=folder.id,
                          size=2048, media="blobs/cat.png", media_type="IMAGE")
    """

    def __init__(
        self,
        database_url: str | None = None,
        *,
        config: StoreConfig | None = None,
        blob_store: BlobStore | None = None,
    ) -> None:
        if config is None:
            config = StoreConfig(database_url=database_url) if database_url else StoreConfig()
        elif database_url is not None:
            raise ValueError("Provide database_url or config, not both")

        self._closed = False
        self.config = config

        # Private event loop in a daemon thread
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
        self._thread.start()

        try:
            self._store: ItemStore = self._run(
                ItemStore.from_config(config, blob_store=blob_store)
            )
        except BaseException:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5)
            raise

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _run(self, coro: Any) -> Any:
        """Submit *coro* to the private loop and block for the result."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    @property
    def store(self) -> ItemStore:
        """The underlying async store."""
        return self._store

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Dispose the engine, stop the event loop and join the thread."""
        if self._closed:
            return
        self._closed = True

        try:
            self._run(self._store.close())
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5)

    def __enter__(self) -> Canopy:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Store wrappers (sync)
    # ------------------------------------------------------------------

    def register_user(self, email: str, name: str, *, image: str | None = None) -> UserBase:
        return self._run(self._store.register_user(email, name, image=image))

    def get_user(self, user_id: str) -> UserBase | None:
        return self._run(self._store.get_user(user_id))

    def create_item(
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
        return self._run(
            self._store.create_item(
                owner_id,
                name,
                size=size,
                media=media,
                media_type=media_type,
                parent_id=parent_id,
                is_private=is_private,
            )
        )

    def create_folder(
        self,
        owner_id: str,
        name: str,
        *,
        parent_id: str | None = None,
        is_private: bool | None = None,
    ) -> ItemInfo:
        return self._run(
            self._store.create_folder(owner_id, name, parent_id=parent_id, is_private=is_private)
        )

    def get_item(self, owner_id: str, item_id: str) -> ItemInfo:
        return self._run(self._store.get_item(owner_id, item_id))

    def list_children(self, owner_id: str, parent_id: str | None = None) -> ListResult:
        return self._run(self._store.list_children(owner_id, parent_id))

    def query_items(self, owner_id: str, query: ItemQuery) -> ListResult:
        return self._run(self._store.query_items(owner_id, query))

    def count_summary(self, owner_id: str) -> CountSummary:
        return self._run(self._store.count_summary(owner_id))

    def get_shared_items(self, owner_id: str, folder_id: str | None = None) -> ListResult:
        return self._run(self._store.get_shared_items(owner_id, folder_id))

    def edit_item(
        self, owner_id: str, item_id: str, name: str, is_private: bool | None = None
    ) -> MutationResult:
        return self._run(self._store.edit_item(owner_id, item_id, name, is_private))

    def star(self, owner_id: str, item_id: str) -> StarResult:
        return self._run(self._store.star(owner_id, item_id))

    def share(self, owner_id: str, item_id: str, target_user_id: str) -> ShareResult:
        return self._run(self._store.share(owner_id, item_id, target_user_id))

    def trash_item(self, owner_id: str, item_id: str) -> MutationResult:
        return self._run(self._store.trash_item(owner_id, item_id))

    def restore_item(self, owner_id: str, item_id: str) -> MutationResult:
        return self._run(self._store.restore_item(owner_id, item_id))

    def delete_item(self, owner_id: str, item_id: str) -> DeleteResult:
        return self._run(self._store.delete_item(owner_id, item_id))

    def empty_trash(self, owner_id: str) -> DeleteResult:
        return self._run(self._store.empty_trash(owner_id))

    def list_trash(self, owner_id: str) -> ListResult:
        return self._run(self._store.list_trash(owner_id))

    def audit_sizes(self, owner_id: str) -> list[SizeMismatch]:
        return self._run(self._store.audit_sizes(owner_id))

    def rebuild_sizes(self, owner_id: str) -> int:
        return self._run(self._store.rebuild_sizes(owner_id))
