from collections.abc import AsyncGenerator
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, MappedAsDataclass

from ..logger import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase, MappedAsDataclass):
    pass


async_engine: AsyncEngine | None = None
local_session: async_sessionmaker[AsyncSession] | None = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE CASCADE unless this pragma is on
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str, echo: bool = False, **kwargs) -> AsyncEngine:
    """Create an async engine, turning on FK enforcement for SQLite."""
    engine = create_async_engine(url, echo=echo, future=True, **kwargs)
    if engine.dialect.name == "sqlite":
        database = engine.url.database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def init_engine(url: str, echo: bool = False) -> async_sessionmaker[AsyncSession]:
    """Create the process-wide engine and session factory."""
    global async_engine, local_session

    async_engine = build_engine(url, echo=echo)
    local_session = async_sessionmaker(
        bind=async_engine, class_=AsyncSession, expire_on_commit=False
    )
    logger.info(f"[DB] Engine initialized ({async_engine.dialect.name})")
    return local_session


async def create_tables() -> None:
    if async_engine is None:
        raise RuntimeError("Database engine not initialized")
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    global async_engine, local_session

    if async_engine is not None:
        await async_engine.dispose()
        logger.info("[DB] Engine disposed")
    async_engine = None
    local_session = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if local_session is None:
        raise RuntimeError("Database engine not initialized")
    return local_session


async def async_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with get_session_factory()() as db:
        yield db
