"""Engine helpers — dialect detection, SQLite pragmas, schema creation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from canopy.models.items import Item
from canopy.models.shares import SharedItem
from canopy.models.users import User

if TYPE_CHECKING:
    from sqlalchemy import Connection, Engine
    from sqlalchemy.ext.asyncio import AsyncEngine
    from sqlmodel import SQLModel

    from .config import StoreConfig

logger = logging.getLogger(__name__)


def get_dialect(engine: Engine | AsyncEngine) -> str:
    """Return 'sqlite', 'postgresql', or 'mssql'."""
    # AsyncEngine wraps a sync engine
    sync_engine = getattr(engine, "sync_engine", engine)
    name = sync_engine.dialect.name
    if name == "sqlite":
        return "sqlite"
    if name in ("postgresql", "postgres"):
        return "postgresql"
    if name in ("mssql", "pyodbc"):
        return "mssql"
    return name


def _is_file_database(engine: AsyncEngine) -> bool:
    database = engine.url.database
    return bool(database) and database != ":memory:" and not database.startswith("file::memory:")


def create_engine(config: StoreConfig) -> AsyncEngine:
    """Create the async engine described by *config*.

    SQLite connections get a busy timeout, and file databases run in WAL
    mode.  Every SQLite transaction starts with ``BEGIN IMMEDIATE``, taking
    the write lock before its first read, so a transaction never acts on
    rows another writer changes before it commits.
    """
    engine = create_async_engine(config.database_url, echo=config.echo)

    if get_dialect(engine) == "sqlite":
        use_wal = _is_file_database(engine)
        busy_timeout = config.sqlite_busy_timeout_ms

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: object, connection_record: object) -> None:
            cursor = dbapi_connection.cursor()  # type: ignore[union-attr]
            if use_wal:
                cursor.execute("PRAGMA journal_mode=WAL")
                result = cursor.fetchone()
                if result[0].lower() != "wal":
                    logger.warning("WAL mode not active, got: %s", result[0])
            cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout)}")
            cursor.close()
            # Hand transaction control to the "begin" listener below
            dbapi_connection.isolation_level = None  # type: ignore[union-attr]

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_immediate(conn: Connection) -> None:
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by ``ItemStore`` — one session per operation."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_schema(
    engine: AsyncEngine,
    *models: type[SQLModel],
) -> None:
    """Create the tables for *models* (default: users, items, grants) if missing."""
    tables = [m.__table__ for m in (models or (User, Item, SharedItem))]  # type: ignore[attr-defined]
    async with engine.begin() as conn:
        for table in tables:
            await conn.run_sync(lambda c, t=table: t.create(c, checkfirst=True))
    logger.debug("Schema ready: %s", ", ".join(t.name for t in tables))
