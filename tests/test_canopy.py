"""Tests for the synchronous Canopy facade."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import pytest

from canopy import Canopy, ItemNotFoundError, ItemQuery, StoreConfig

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def canopy(tmp_path) -> Iterator[Canopy]:
    c = Canopy(f"sqlite+aiosqlite:///{tmp_path / 'sync.db'}")
    yield c
    c.close()


class TestCanopy:
    def test_end_to_end(self, canopy: Canopy):
        alice = canopy.register_user("alice@example.com", "Alice")
        bob = canopy.register_user("bob@example.com", "Bob")

        folder = canopy.create_folder(alice.id, "Photos", is_private=True)
        cat = canopy.create_item(
            alice.id,
            "cat.png",
            size=2048,
            media="blobs/cat.png",
            media_type="IMAGE",
            parent_id=folder.id,
        )
        assert cat.is_private is True
        assert canopy.get_item(alice.id, folder.id).size == 2048

        canopy.share(alice.id, folder.id, bob.id)
        assert [i.id for i in canopy.get_shared_items(bob.id).items] == [folder.id]
        assert [i.id for i in canopy.get_shared_items(bob.id, folder.id).items] == [cat.id]

        assert canopy.star(alice.id, cat.id).starred is True
        starred = canopy.query_items(alice.id, ItemQuery(starred=True))
        assert [i.id for i in starred.items] == [cat.id]

        canopy.edit_item(alice.id, cat.id, "kitten.png")
        canopy.trash_item(alice.id, cat.id)
        assert [i.name for i in canopy.list_trash(alice.id).items] == ["kitten.png"]
        canopy.restore_item(alice.id, cat.id)
        canopy.trash_item(alice.id, cat.id)

        result = canopy.delete_item(alice.id, cat.id)
        assert result.released_blobs == ["blobs/cat.png"]
        assert canopy.get_item(alice.id, folder.id).size == 0
        assert canopy.audit_sizes(alice.id) == []
        assert canopy.empty_trash(alice.id).deleted_ids == []
        assert canopy.count_summary(alice.id).folders == 1
        assert canopy.list_children(alice.id, folder.id).items == []

    def test_errors_propagate(self, canopy: Canopy):
        user = canopy.register_user("carol@example.com", "Carol")
        with pytest.raises(ItemNotFoundError):
            canopy.get_item(user.id, "missing")

    def test_calls_from_worker_threads(self, canopy: Canopy):
        user = canopy.register_user("dave@example.com", "Dave")
        folder = canopy.create_folder(user.id, "Shared")
        errors: list[BaseException] = []

        def worker(n: int) -> None:
            try:
                canopy.create_item(
                    user.id,
                    f"f{n}.pdf",
                    size=10,
                    media=f"blobs/f{n}.pdf",
                    media_type="PDF",
                    parent_id=folder.id,
                )
            except BaseException as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert canopy.get_item(user.id, folder.id).size == 50

    def test_close_is_idempotent(self, tmp_path):
        c = Canopy(f"sqlite+aiosqlite:///{tmp_path / 'once.db'}")
        c.close()
        c.close()

    def test_context_manager(self, tmp_path):
        with Canopy(config=StoreConfig(database_url=f"sqlite+aiosqlite:///{tmp_path / 'cm.db'}")) as c:
            assert c.store.config.database_url.endswith("cm.db")

    def test_url_and_config_are_exclusive(self):
        with pytest.raises(ValueError):
            Canopy("sqlite+aiosqlite://", config=StoreConfig())
