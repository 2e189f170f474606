"""Async database engine for player statistics."""

import logging
import pathlib
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncEngine, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from blackjack_bot.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass

_engine: AsyncEngine | None = None
_async_session: async_sessionmaker[AsyncSession] | None = None


def _ensure_sqlite_dir(database_url: str) -> None:
    """Create the directory of a file-backed SQLite database."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        pathlib.Path(url.database).parent.mkdir(parents=True, exist_ok=True)


async def init_db(database_url: str | None = None) -> async_sessionmaker[AsyncSession]:
    """Create the engine and missing tables, and return the session factory."""
    global _engine, _async_session
    database_url = database_url or settings.database_url
    _ensure_sqlite_dir(database_url)
    _engine = create_async_engine(database_url, echo=False)
    _async_session = async_sessionmaker(_engine, expire_on_commit=False)

    from . import models  # noqa: F401
    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info(f"Database ready: {make_url(database_url).render_as_string(hide_password=True)}")
    return _async_session


async def close_db():
    global _engine, _async_session
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _async_session = None


def get_session() -> async_sessionmaker[AsyncSession]:
    assert _async_session is not None, "DB is not initialized"
    return _async_session
