"""
church_rbac.api.routers.auth_session

Login-time endpoints.

Responsibilities:
- Resolve the signed-in caller's role once per login and re-sync cached claims.
- Bootstrap the first administrator from the configured secret.
- Link auth accounts that have no member row yet (same secret).
"""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from church_rbac.api.deps import db_session, settings_dep
from church_rbac.auth.deps import get_identity, get_resolver
from church_rbac.auth.models import Identity
from church_rbac.rbac.errors import Unauthenticated
from church_rbac.rbac.resolver import PrincipalResolver
from church_rbac.rbac.roles import RoleLevel, get_role_name, role_slug
from church_rbac.services.role_assignment_service import RoleAssignmentService
from church_rbac.settings import Settings

router = APIRouter(prefix="/api/auth", tags=["auth"])

ADMIN_HOME = "/admin"
MEMBER_HOME = "/member/dashboard"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SessionResponse(_CamelModel):
    member_id: uuid.UUID
    email: str | None
    role: str
    role_level: int
    role_name: str
    context_map: dict[str, Any] | None
    status: str
    home_path: str


class FixUserRoleRequest(_CamelModel):
    email: str = Field(min_length=3, max_length=320)
    admin_secret: str = Field(min_length=1)


class SyncUsersRequest(_CamelModel):
    admin_secret: str = Field(min_length=1)


class SyncUsersResponse(_CamelModel):
    success: bool = True
    total: int
    created: list[str]
    relinked: list[str]
    conflicts: list[str]


class FixUserRoleResponse(_CamelModel):
    success: bool = True
    member_id: uuid.UUID
    email: str
    role_level: int
    role_name: str
    message: str


@router.get("/session", response_model=SessionResponse)
async def current_session(
    identity: Identity | None = Depends(get_identity),
    resolver: PrincipalResolver = Depends(get_resolver),
) -> SessionResponse:
    principal = await resolver.resolve(identity, refresh_claims=True)
    if not principal.is_authenticated:
        raise Unauthenticated()
    return SessionResponse(
        member_id=principal.member_id,  # type: ignore[arg-type]
        email=principal.email,
        role=role_slug(principal.role_level),
        role_level=principal.role_level,
        role_name=get_role_name(principal.role_level),
        context_map=principal.context_map,
        status=principal.status,
        home_path=ADMIN_HOME if principal.role_level >= RoleLevel.ADMIN else MEMBER_HOME,
    )


@router.post("/fix-user-role", response_model=FixUserRoleResponse)
async def fix_user_role(
    body: FixUserRoleRequest,
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> FixUserRoleResponse:
    result = await RoleAssignmentService(session=session, settings=settings).bootstrap_admin(
        email=body.email, secret=body.admin_secret
    )
    return FixUserRoleResponse(
        member_id=result.member_id,
        email=result.email,
        role_level=result.role_level,
        role_name=result.role_name,
        message=f"Successfully fixed role for user: {result.email}",
    )


@router.post("/sync-users", response_model=SyncUsersResponse)
async def sync_users(
    body: SyncUsersRequest,
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> SyncUsersResponse:
    result = await RoleAssignmentService(session=session, settings=settings).sync_accounts(
        secret=body.admin_secret
    )
    return SyncUsersResponse(
        total=result.total,
        created=result.created,
        relinked=result.relinked,
        conflicts=result.conflicts,
    )
