"""
church_rbac.db.repositories.audit

Append-only role-change trail.

Responsibilities:
- Record who changed a member's role, from what, to what.
- Return a member's role history for the admin console, newest first.
- Carry a member's history over when the member row is re-keyed.
"""

from __future__ import annotations

import uuid
from enum import StrEnum
from typing import Any

from sqlalchemy import desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from church_rbac.db.models import AuditEvent

# Actors that are not members.
BOOTSTRAP_ACTOR = "bootstrap"
SYSTEM_ACTOR = "system"


class AuditEventType(StrEnum):
    ROLE_ASSIGNED = "ROLE_ASSIGNED"
    ADMIN_BOOTSTRAPPED = "ADMIN_BOOTSTRAPPED"
    MEMBER_AUTO_REGISTERED = "MEMBER_AUTO_REGISTERED"
    MEMBER_RELINKED = "MEMBER_RELINKED"


class AuditRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        event_type: AuditEventType,
        *,
        member_id: uuid.UUID,
        actor: uuid.UUID | str,
        details: dict[str, Any],
    ) -> AuditEvent:
        # Flushed, not committed: the caller's role write and this row commit together.
        ev = AuditEvent(
            member_id=member_id,
            actor=str(actor),
            event_type=str(event_type),
            details=details,
        )
        self._session.add(ev)
        await self._session.flush()
        return ev

    async def move_member(self, old_id: uuid.UUID, new_id: uuid.UUID) -> None:
        # History follows a re-keyed member; no other path rewrites event rows.
        stmt = (
            update(AuditEvent)
            .where(AuditEvent.member_id == old_id)
            .values(member_id=new_id)
        )
        await self._session.execute(stmt)

    async def list_for_member(self, member_id: uuid.UUID, *, limit: int = 200) -> list[AuditEvent]:
        stmt = (
            select(AuditEvent)
            .where(AuditEvent.member_id == member_id)
            # created_at can tie within one transaction; id keeps the page stable.
            .order_by(desc(AuditEvent.created_at), AuditEvent.id)
            .limit(limit)
        )
        return list((await self._session.execute(stmt)).scalars().all())
