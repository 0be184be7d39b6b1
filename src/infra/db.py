"""Postgres plumbing shared by the PG object store and the PG directory.

Every adapter opens short-lived sessions from one ``async_sessionmaker``
and filters by ``org_id`` itself; nothing here knows about tenants.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.infra.models import Base

logger = logging.getLogger(__name__)

ASYNC_DRIVER = "postgresql+asyncpg"
_PLAIN_SCHEMES = ("postgres://", "postgresql://")


def normalize_database_url(url: str) -> str:
    """Rewrite ``postgres://`` style URLs to the asyncpg dialect.

    Hosting platforms commonly hand out the plain scheme; URLs that
    already name a driver are returned unchanged.
    """
    for scheme in _PLAIN_SCHEMES:
        if url.startswith(scheme):
            return f"{ASYNC_DRIVER}://{url[len(scheme):]}"
    return url


def create_db_engine(
    url: str,
    *,
    pool_size: int = 10,
    max_overflow: int = 20,
    echo: bool = False,
) -> AsyncEngine:
    """Build the asyncpg engine. No connection is made until first use."""
    engine = create_async_engine(
        normalize_database_url(url),
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        echo=echo,
    )
    logger.debug("Database engine created for %s", engine.url.render_as_string())
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Records are built from ORM rows after commit.
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create whatever tables and indexes are missing. Safe to call on every boot."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured (%d tables)", len(Base.metadata.tables))
