from __future__ import annotations

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

from church_rbac.db import models  # noqa: F401  # registers members/auth_accounts/audit_events
from church_rbac.db.base import Base
from church_rbac.observability.logging import get_logger

log = get_logger(__name__)


async def init_db(engine: AsyncEngine) -> list[str]:
    """Create any missing member-store tables (dev/test only; prod runs Alembic)."""

    async with engine.begin() as conn:
        existing = set(await conn.run_sync(lambda sync: inspect(sync).get_table_names()))
        await conn.run_sync(Base.metadata.create_all)

    created = [t for t in Base.metadata.tables if t not in existing]
    if created:
        log.info("member_store_initialized", tables=created)
    return created
