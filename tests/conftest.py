"""Shared fixtures for Canopy tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from canopy.store.config import StoreConfig
from canopy.store.item_store import ItemStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

    from canopy.models.users import UserBase


class RecordingBlobStore:
    """Blob store that remembers what it was asked to release."""

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.released: list[str] = []
        self.fail_on = fail_on or set()

    async def release(self, locator: str) -> None:
        if locator in self.fail_on:
            raise OSError(f"cannot reach object storage for {locator}")
        self.released.append(locator)


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Async SQLModel session, rolled back after each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def blobs() -> RecordingBlobStore:
    return RecordingBlobStore()


@pytest.fixture
def store(
    session_factory: async_sessionmaker[AsyncSession],
    blobs: RecordingBlobStore,
) -> ItemStore:
    return ItemStore(session_factory, blob_store=blobs, config=StoreConfig())


@pytest.fixture
async def alice(store: ItemStore) -> UserBase:
    return await store.register_user("alice@example.com", "Alice", image="alice.png")


@pytest.fixture
async def bob(store: ItemStore) -> UserBase:
    return await store.register_user("bob@example.com", "Bob")


@pytest.fixture
async def carol(store: ItemStore) -> UserBase:
    return await store.register_user("carol@example.com", "Carol")
