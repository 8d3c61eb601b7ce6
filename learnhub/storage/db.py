"""Async engine, session factory and dialect helpers.

SQLite (via aiosqlite) is the default store; any async SQLAlchemy URL works.
On SQLite every connection enables foreign keys and WAL journaling so the API
process and the job worker can share one database file.
"""

import os
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from learnhub.logging import get_logger

logger = get_logger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None

SQLITE_BUSY_TIMEOUT_SECONDS = 30


class Base(DeclarativeBase):
    """Declarative base of every LearnHub table."""


def _get_database_url() -> str:
    # Environment first so alembic can point elsewhere
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    from learnhub.config import config
    return config.database_url


def _set_sqlite_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an engine with per-dialect connection settings."""
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        engine = create_async_engine(
            url,
            echo=echo,
            connect_args={"timeout": SQLITE_BUSY_TIMEOUT_SECONDS},
        )
        event.listen(engine.sync_engine, "connect", _set_sqlite_pragmas)
        return engine

    return create_async_engine(url, echo=echo, pool_pre_ping=True)


def get_engine() -> AsyncEngine:
    """Process-wide engine, created on first use."""
    global _engine

    if _engine is None:
        from learnhub.config import config

        database_url = _get_database_url()
        logger.info(
            "Creating database engine",
            extra={"context": {"backend": make_url(database_url).get_backend_name()}},
        )
        _engine = build_engine(database_url, echo=config.log_level == "DEBUG")

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )

    return _session_factory


def dialect_insert(session: AsyncSession, model: type[Base]) -> Any:
    """INSERT construct supporting ``on_conflict_do_update`` for the bound dialect."""
    if session.bind is not None and session.bind.dialect.name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        from sqlalchemy.dialects.sqlite import insert
    return insert(model)


async def create_all_tables() -> None:
    """Create missing tables. Existing tables are left untouched."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def close_engine() -> None:
    """Dispose the engine; the next ``get_engine`` call creates a new one."""
    global _engine, _session_factory

    if _engine is None:
        return

    logger.info("Closing database engine")
    await _engine.dispose()
    _engine = None
    _session_factory = None
