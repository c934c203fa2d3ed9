"""Tests for SizeAggregator: propagation, chain walking, audit and rebuild."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import update

from canopy.models.items import Item, LifecycleState
from canopy.store.exceptions import ConsistencyError
from canopy.store.metadata import MetadataService
from canopy.store.sizes import SizeAggregator

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


@pytest.fixture
def sizes() -> SizeAggregator:
    return SizeAggregator(Item)


@pytest.fixture
def metadata() -> MetadataService:
    return MetadataService(Item)


async def _add(session: AsyncSession, name: str, **kwargs) -> Item:
    item = Item(owner_id=kwargs.pop("owner_id", "u1"), name=name, **kwargs)
    session.add(item)
    await session.flush()
    return item


async def _size(metadata: MetadataService, session: AsyncSession, item_id: str) -> int:
    item = await metadata.get_item(session, item_id)
    assert item is not None
    return item.size


class TestAncestorChain:
    async def test_chain_runs_to_root(self, async_session: AsyncSession, sizes):
        a = await _add(async_session, "A", is_folder=True)
        b = await _add(async_session, "B", is_folder=True, parent_id=a.id)
        c = await _add(async_session, "C", is_folder=True, parent_id=b.id)
        assert await sizes.ancestor_chain(async_session, c.id) == [c.id, b.id, a.id]

    async def test_root_chain_is_itself(self, async_session: AsyncSession, sizes):
        a = await _add(async_session, "A", is_folder=True)
        assert await sizes.ancestor_chain(async_session, a.id) == [a.id]

    async def test_cycle_raises(self, async_session: AsyncSession, sizes):
        a = await _add(async_session, "A", is_folder=True, id="a")
        await _add(async_session, "B", is_folder=True, id="b", parent_id="a")
        a.parent_id = "b"
        await async_session.flush()

        with pytest.raises(ConsistencyError):
            await sizes.ancestor_chain(async_session, "a")

    async def test_dangling_parent_raises(self, async_session: AsyncSession, sizes):
        orphan = await _add(async_session, "lost", is_folder=True, parent_id="missing")
        with pytest.raises(ConsistencyError) as exc_info:
            await sizes.ancestor_chain(async_session, orphan.id)
        assert exc_info.value.details == {"missing": "missing"}


class TestPropagate:
    async def test_delta_reaches_every_ancestor(
        self, async_session: AsyncSession, sizes, metadata
    ):
        a = await _add(async_session, "A", is_folder=True)
        b = await _add(async_session, "B", is_folder=True, parent_id=a.id)

        chain = await sizes.propagate(async_session, b.id, 100)

        assert chain == [b.id, a.id]
        assert await _size(metadata, async_session, a.id) == 100
        assert await _size(metadata, async_session, b.id) == 100

    async def test_negative_delta(self, async_session: AsyncSession, sizes, metadata):
        a = await _add(async_session, "A", is_folder=True, size=150)
        await sizes.propagate(async_session, a.id, -100)
        assert await _size(metadata, async_session, a.id) == 50

    async def test_zero_delta_writes_nothing(self, async_session: AsyncSession, sizes, metadata):
        a = await _add(async_session, "A", is_folder=True, size=7)
        assert await sizes.propagate(async_session, a.id, 0) == [a.id]
        assert await _size(metadata, async_session, a.id) == 7

    async def test_increment_applies_to_stored_value(
        self, async_session: AsyncSession, sizes, metadata
    ):
        a = await _add(async_session, "A", is_folder=True)
        # Another writer bumps the stored size after we loaded the record
        await async_session.execute(update(Item).where(Item.id == a.id).values(size=500))

        await sizes.propagate(async_session, a.id, 10)

        assert await _size(metadata, async_session, a.id) == 510

    async def test_large_sizes(self, async_session: AsyncSession, sizes, metadata):
        a = await _add(async_session, "A", is_folder=True)
        await sizes.propagate(async_session, a.id, 6 * 1024**3)
        await sizes.propagate(async_session, a.id, 6 * 1024**3)
        assert await _size(metadata, async_session, a.id) == 12 * 1024**3


class TestAuditAndRebuild:
    async def _tree(self, session: AsyncSession) -> tuple[Item, Item, Item, Item]:
        a = await _add(session, "A", is_folder=True, size=150)
        b = await _add(session, "B", is_folder=True, parent_id=a.id, size=100)
        f1 = await _add(session, "f1", parent_id=b.id, size=100)
        f2 = await _add(session, "f2", parent_id=a.id, size=50)
        return a, b, f1, f2

    async def test_consistent_tree_has_no_mismatches(self, async_session: AsyncSession, sizes):
        await self._tree(async_session)
        assert await sizes.audit(async_session, "u1") == []

    async def test_audit_reports_drift(self, async_session: AsyncSession, sizes):
        a, _, _, _ = await self._tree(async_session)
        await async_session.execute(update(Item).where(Item.id == a.id).values(size=999))

        mismatches = await sizes.audit(async_session, "u1")

        assert len(mismatches) == 1
        assert mismatches[0].item_id == a.id
        assert mismatches[0].recorded == 999
        assert mismatches[0].expected == 150

    async def test_audit_counts_trashed_children(self, async_session: AsyncSession, sizes):
        a = await _add(async_session, "A", is_folder=True, size=30)
        await _add(async_session, "f", parent_id=a.id, size=30, state=LifecycleState.TRASHED)
        assert await sizes.audit(async_session, "u1") == []

    async def test_rebuild_repairs_nested_drift(
        self, async_session: AsyncSession, sizes, metadata
    ):
        a, b, _, _ = await self._tree(async_session)
        await async_session.execute(update(Item).where(Item.id == a.id).values(size=1))
        await async_session.execute(update(Item).where(Item.id == b.id).values(size=2))

        corrected = await sizes.rebuild(async_session, "u1")

        assert corrected == 2
        assert await _size(metadata, async_session, a.id) == 150
        assert await _size(metadata, async_session, b.id) == 100
        assert await sizes.audit(async_session, "u1") == []

    async def test_rebuild_is_scoped_to_owner(self, async_session: AsyncSession, sizes, metadata):
        other = await _add(async_session, "X", is_folder=True, owner_id="u2", size=42)
        assert await sizes.rebuild(async_session, "u1") == 0
        assert await _size(metadata, async_session, other.id) == 42

    async def test_rebuild_rejects_unreachable_cycle(self, async_session: AsyncSession, sizes):
        a = await _add(async_session, "A", is_folder=True, id="a")
        await _add(async_session, "B", is_folder=True, id="b", parent_id="a")
        a.parent_id = "b"
        await async_session.flush()

        with pytest.raises(ConsistencyError):
            await sizes.rebuild(async_session, "u1")
