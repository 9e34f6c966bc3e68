"""Database configuration and session management.

This module constructs an asynchronous SQLAlchemy engine and session
factory for the application from ``DATABASE_URL``.  Plain ``sqlite`` and
``postgresql`` URLs are upgraded to their async drivers so the same
setting works for local development and deployments.

The API process shares the module-level engine.  The Dramatiq worker
runs every message in its own event loop, so it builds a private engine
per message with :func:`create_engine` and disposes it afterwards.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from donation_verifier.core.config import settings


logger = logging.getLogger(__name__)

# Declarative base
Base = declarative_base()


def normalise_database_url(url: str) -> str:
    """Return ``url`` with an async driver selected."""
    url_obj = make_url(url)
    driver = url_obj.drivername or ""
    if driver == "sqlite":
        url_obj = url_obj.set(drivername="sqlite+aiosqlite")
    elif driver in {"postgresql", "postgres", "postgresql+psycopg2"}:
        url_obj = url_obj.set(drivername="postgresql+psycopg")
    return url_obj.render_as_string(hide_password=False)


def create_engine(url: Optional[str] = None) -> AsyncEngine:
    """Build an async engine for ``url`` (defaults to ``DATABASE_URL``)."""
    db_url = normalise_database_url(url or settings.DATABASE_URL)
    engine_kwargs: Dict[str, Any] = dict(echo=False)
    if not db_url.startswith("sqlite"):
        engine_kwargs["pool_pre_ping"] = True
    return create_async_engine(db_url, **engine_kwargs)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = create_engine()

# Create session factory
AsyncSessionLocal = create_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields a database session.

    This function is intended for FastAPI dependency injection.  Each
    session is scoped to the request and closed after use.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """Create all tables defined on the declarative ``Base``."""
    target = bind or engine
    async with target.begin() as conn:
        # Import all models to ensure metadata is populated
        from donation_verifier.models import tables  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database tables ensured url=%s", target.url.render_as_string(hide_password=True))
