"""Database engine and session configuration."""

import logging
from functools import lru_cache
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import Session, sessionmaker

from stajkontrol.config import Settings, settings
from stajkontrol.db.base import Base

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str, config: Settings) -> dict:
    kwargs = {"echo": config.DATABASE_ECHO, "pool_pre_ping": True}
    # SQLite (tests, local dev) has no pool sizing
    if not url.startswith("sqlite"):
        kwargs["pool_size"] = config.DATABASE_POOL_SIZE
        kwargs["max_overflow"] = config.DATABASE_MAX_OVERFLOW
    return kwargs


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Async engine plus session factory owned by one application instance.

    Created in the FastAPI lifespan, stored on ``app.state.db`` and
    disposed on shutdown.
    """

    def __init__(self, url: str, config: Settings = settings):
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **_engine_kwargs(url, config))
        if url.startswith("sqlite"):
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def create_all(self) -> None:
        """Create tables (tests and DEBUG only; production uses Alembic)."""
        import stajkontrol.models  # noqa: F401  registers every model

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database engine disposed")


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session.

    Services commit explicitly; anything left uncommitted is rolled back.
    """
    db: Database = request.app.state.db
    async with db.session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


@lru_cache
def get_sync_session_factory(url: str = "") -> sessionmaker:
    """Synchronous session factory for Celery workers and the Excel importer."""
    url = url or settings.SYNC_DATABASE_URL
    engine = create_engine(url, **_engine_kwargs(url, settings))
    if url.startswith("sqlite"):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return sessionmaker(engine, class_=Session, expire_on_commit=False, autoflush=False)
