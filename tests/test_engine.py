"""Tests for engine helpers — dialect detection, SQLite pragmas, schema creation."""

from __future__ import annotations

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import create_async_engine

from canopy.models.items import Item
from canopy.store.config import StoreConfig
from canopy.store.engine import create_engine, create_session_factory, get_dialect, init_schema


class TestGetDialect:
    async def test_sqlite_async(self):
        engine = create_async_engine("sqlite+aiosqlite://", echo=False)
        assert get_dialect(engine) == "sqlite"
        await engine.dispose()

    def test_sqlite_sync(self):
        from sqlmodel import create_engine as create_sync_engine

        engine = create_sync_engine("sqlite://", echo=False)
        assert get_dialect(engine) == "sqlite"


class TestCreateEngine:
    async def test_file_database_uses_wal(self, tmp_path):
        config = StoreConfig(
            database_url=f"sqlite+aiosqlite:///{tmp_path / 'wal.db'}",
            sqlite_busy_timeout_ms=1234,
        )
        engine = create_engine(config)
        try:
            async with engine.connect() as conn:
                mode = (await conn.execute(text("PRAGMA journal_mode"))).scalar()
                timeout = (await conn.execute(text("PRAGMA busy_timeout"))).scalar()
            assert mode == "wal"
            assert timeout == 1234
        finally:
            await engine.dispose()

    async def test_memory_database_skips_wal(self):
        engine = create_engine(StoreConfig(database_url="sqlite+aiosqlite://"))
        try:
            async with engine.connect() as conn:
                mode = (await conn.execute(text("PRAGMA journal_mode"))).scalar()
            assert mode == "memory"
        finally:
            await engine.dispose()


class TestInitSchema:
    async def test_creates_default_tables(self):
        engine = create_async_engine("sqlite+aiosqlite://")
        try:
            await init_schema(engine)
            async with engine.connect() as conn:
                names = await conn.run_sync(lambda c: inspect(c).get_table_names())
            assert {"canopy_users", "canopy_items", "canopy_shared_items"} <= set(names)
        finally:
            await engine.dispose()

    async def test_is_idempotent_and_selective(self):
        engine = create_async_engine("sqlite+aiosqlite://")
        try:
            await init_schema(engine, Item)
            await init_schema(engine, Item)
            async with engine.connect() as conn:
                names = await conn.run_sync(lambda c: inspect(c).get_table_names())
            assert names == ["canopy_items"]
        finally:
            await engine.dispose()

    async def test_session_factory_keeps_objects_after_commit(self):
        engine = create_async_engine("sqlite+aiosqlite://")
        try:
            await init_schema(engine)
            factory = create_session_factory(engine)
            async with factory() as session:
                item = Item(owner_id="u1", name="doc")
                session.add(item)
                await session.commit()
                assert item.name == "doc"
        finally:
            await engine.dispose()
