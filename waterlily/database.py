# waterlily/database.py
import logging
from typing import AsyncIterator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from . import config

logger = logging.getLogger(__name__)


def build_engine(url: str, echo: bool = False):
    """Create the async engine for ``url``.

    An in-memory SQLite database only lives as long as its connection, so it
    gets a single shared connection.
    """
    kwargs = {"echo": echo}
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:"):
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    return create_async_engine(url, **kwargs)


logger.debug("Using DATABASE_URL: %s", config.DATABASE_URL)

engine = build_engine(config.DATABASE_URL, echo=config.SQL_ECHO)

AsyncSessionFactory = async_sessionmaker(
    bind=engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
)

Base = declarative_base()


async def get_db_session() -> AsyncIterator[AsyncSession]:
    # Writes commit inside the document store, so the dependency only has to
    # roll back leftovers and close the session.
    async with AsyncSessionFactory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_db_and_tables() -> None:
    """Create missing tables.

    Production schemas are managed by Alembic; ``create_all`` only adds tables
    that do not exist yet, which keeps a fresh SQLite setup usable without
    running migrations first.
    """
    from . import models  # noqa: F401  (registers the tables on Base.metadata)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def dispose_engine() -> None:
    await engine.dispose()
