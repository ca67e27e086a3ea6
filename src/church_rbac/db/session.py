"""
church_rbac.db.session

Async engine and session factory for the member store.
"""

from __future__ import annotations

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from church_rbac.settings import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    url = make_url(settings.database_url)
    if url.get_backend_name() == "sqlite":
        # SQLite serializes writers; a locked file should surface as a timeout, not hang.
        return create_async_engine(
            url, connect_args={"timeout": settings.store_timeout_seconds}
        )
    return create_async_engine(
        url,
        pool_pre_ping=True,
        pool_timeout=settings.store_timeout_seconds,
    )


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Members stay readable after the resolver/service commits.
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
