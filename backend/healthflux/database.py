"""
HealthFlux Backend — Database Engine and Sessions
==================================================

What:  Async SQLAlchemy engine, session factory, and declarative base for
       the entity store.
How:   One engine per process with connection pooling. The entity store
       opens a short-lived session per operation from `async_session_factory`
       so that concurrent fetches inside a request never share a session.
Who:   healthflux.services.entity_store, the health route, Alembic.

Connection Pooling:
    pool_size=20, max_overflow=10: at most 30 connections per process
    pool_pre_ping: stale connections are detected before use
    pool_recycle=3600: connections are recycled hourly
    SQLite URLs (tests, local runs) use SQLAlchemy's default pool instead.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from healthflux.config import settings


def build_engine(database_url: str) -> AsyncEngine:
    """Create an async engine, applying pool sizing only where the dialect supports it."""
    url = make_url(database_url)
    options = {"echo": settings.log_level == "DEBUG"}
    if url.get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return create_async_engine(database_url, **options)


engine = build_engine(settings.database_url)

# expire_on_commit=False: records stay readable after the operation's commit
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shared metadata for Alembic)."""
    pass


async def dispose_engine() -> None:
    """Closes all pooled connections. Called during application shutdown."""
    await engine.dispose()
