"""
church_rbac.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Provide liveness probe (`/healthz`).
- Provide readiness probe (`/readyz`) with member store connectivity validation.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from church_rbac.api.deps import db_session, settings_dep
from church_rbac.rbac.store import store_call
from church_rbac.settings import Settings

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> dict[str, str]:
    # An unreachable store surfaces as 503 through the BackingStoreUnavailable handler.
    async with store_call(op="readyz", timeout_seconds=settings.store_timeout_seconds):
        await session.execute(text("SELECT 1"))
    return {"status": "ready"}
