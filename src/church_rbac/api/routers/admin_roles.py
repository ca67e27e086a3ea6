"""
church_rbac.api.routers.admin_roles

Administrative role endpoints.

Responsibilities:
- Assign a member's role level and scope (`POST /api/admin/set-user-role`).
- List members with their roles for the admin console.
- Expose a member's role-change history.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from church_rbac.api.deps import db_session, settings_dep
from church_rbac.auth.deps import require_access
from church_rbac.auth.models import EffectivePrincipal
from church_rbac.rbac.roles import RoleLevel, get_role_name
from church_rbac.services.role_assignment_service import RoleAssignmentService
from church_rbac.settings import Settings

router = APIRouter(prefix="/api/admin", tags=["admin"])

_admin = require_access(RoleLevel.ADMIN)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SetUserRoleRequest(_CamelModel):
    target_email: str = Field(min_length=1, max_length=320)
    role_level: int
    context_type: str | None = None
    # A bare id is accepted and treated as a one-element list.
    context_ids: list[str] | str | None = None


class SetUserRoleResponse(_CamelModel):
    success: bool = True
    member_id: uuid.UUID
    email: str
    role: str
    role_level: int
    role_name: str
    context_map: dict[str, Any] | None


class MemberRoleItem(_CamelModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    role: str
    role_level: int
    role_name: str
    role_context: dict[str, Any] | None
    status: str


class RoleHistoryItem(_CamelModel):
    id: uuid.UUID
    event_type: str
    actor: str
    details: dict[str, Any]
    created_at: datetime


@router.post("/set-user-role", response_model=SetUserRoleResponse)
async def set_user_role(
    body: SetUserRoleRequest,
    principal: EffectivePrincipal = Depends(_admin),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> SetUserRoleResponse:
    context_ids = [body.context_ids] if isinstance(body.context_ids, str) else body.context_ids
    result = await RoleAssignmentService(session=session, settings=settings).assign_role(
        actor_id=principal.member_id,  # type: ignore[arg-type]
        target=body.target_email,
        new_level=body.role_level,
        context_type=body.context_type,
        context_ids=context_ids,
    )
    return SetUserRoleResponse(
        member_id=result.member_id,
        email=result.email,
        role=result.role,
        role_level=result.role_level,
        role_name=result.role_name,
        context_map=result.context_map,
    )


@router.get("/members", response_model=list[MemberRoleItem])
async def list_members(
    search: str | None = Query(default=None, max_length=128),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    principal: EffectivePrincipal = Depends(_admin),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> list[MemberRoleItem]:
    members = await RoleAssignmentService(session=session, settings=settings).list_members(
        actor_id=principal.member_id,  # type: ignore[arg-type]
        search=search,
        limit=limit,
        offset=offset,
    )
    return [
        MemberRoleItem(
            id=m.id,
            email=m.email,
            first_name=m.first_name,
            last_name=m.last_name,
            role=m.role,
            role_level=m.role_level,
            role_name=get_role_name(m.role_level),
            role_context=m.role_context,
            status=str(m.status),
        )
        for m in members
    ]


@router.get("/members/{member_id}/role-history", response_model=list[RoleHistoryItem])
async def role_history(
    member_id: uuid.UUID,
    limit: int = Query(default=200, ge=1, le=1000),
    principal: EffectivePrincipal = Depends(_admin),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> list[RoleHistoryItem]:
    # Newest first (see AuditRepo).
    events = await RoleAssignmentService(session=session, settings=settings).role_history(
        actor_id=principal.member_id,  # type: ignore[arg-type]
        member_id=member_id,
        limit=limit,
    )
    return [
        RoleHistoryItem(
            id=e.id,
            event_type=e.event_type,
            actor=e.actor,
            details=e.details or {},
            created_at=e.created_at,
        )
        for e in events
    ]


# --- Module Notes -----------------------------------------------------------
# The route dependency rejects non-admins early; RoleAssignmentService re-checks the
# actor itself so the operation stays safe when called outside HTTP.
