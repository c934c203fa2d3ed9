"""Contract tests for the public canopy API surface."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

import canopy
import canopy.store
from canopy import Canopy, ItemStore
from canopy.store.types import (
    CountSummary,
    DeleteResult,
    ItemInfo,
    ListResult,
    MutationResult,
    ShareResult,
    StarResult,
)


@pytest.mark.parametrize("module", [canopy, canopy.store])
def test_all_names_resolve(module) -> None:
    for name in module.__all__:
        assert hasattr(module, name), name


async def test_async_operations_return_result_types(store: ItemStore, alice, bob) -> None:
    folder = await store.create_folder(alice.id, "Docs", is_private=True)
    item = await store.create_item(
        alice.id, "a.pdf", size=1, media="blobs/a.pdf", media_type="PDF", parent_id=folder.id
    )

    assert isinstance(folder, ItemInfo)
    assert isinstance(await store.list_children(alice.id), ListResult)
    assert isinstance(await store.edit_item(alice.id, item.id, "b.pdf"), MutationResult)
    assert isinstance(await store.star(alice.id, item.id), StarResult)
    assert isinstance(await store.share(alice.id, item.id, bob.id), ShareResult)
    assert isinstance(await store.count_summary(alice.id), CountSummary)
    assert isinstance(await store.trash_item(alice.id, item.id), MutationResult)
    assert isinstance(await store.delete_item(alice.id, item.id), DeleteResult)


def test_sync_facade_mirrors_async_operations() -> None:
    skipped = {"from_config", "close", "item_model", "share_model", "user_model"}
    public = {
        name
        for name in vars(ItemStore)
        if not name.startswith("_") and name not in skipped
    }
    missing = {name for name in public if not hasattr(Canopy, name)}
    assert missing == set()


def test_version_is_exported() -> None:
    assert re.match(r"^\d+\.\d+\.\d+$", canopy.__version__)


def test_version_matches_pyproject() -> None:
    pyproject = Path(__file__).resolve().parent.parent / "pyproject.toml"
    text = pyproject.read_text()
    match = re.search(r'^version\s*=\s*"(\d+\.\d+\.\d+)"', text, re.MULTILINE)
    assert match is not None
    assert match.group(1) == canopy.__version__
