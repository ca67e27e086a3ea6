"""
church_rbac.auth.deps

FastAPI dependency functions for authentication and authorization.

Responsibilities:
- Convert a bearer token into a typed `Identity`.
- Resolve the caller's effective principal through the shared resolver.
- Enforce role level / context scope via a reusable dependency factory.
"""

from __future__ import annotations

import structlog
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_401_UNAUTHORIZED

from church_rbac.api.deps import db_session, settings_dep
from church_rbac.auth.jwt import JwtConfig, JwtValidationError, decode_and_validate
from church_rbac.auth.models import EffectivePrincipal, Identity
from church_rbac.rbac.errors import ContextDenied, InsufficientRole, Unauthenticated
from church_rbac.rbac.evaluator import evaluate
from church_rbac.rbac.resolver import PrincipalResolver
from church_rbac.rbac.roles import ContextType, RoleLevel
from church_rbac.settings import Settings

_bearer = HTTPBearer(auto_error=False)


def get_identity(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(settings_dep),
) -> Identity | None:
    # No token at all is "anonymous", not an error; the resolver maps it to level 0.
    if creds is None or not creds.credentials:
        return None

    try:
        payload = decode_and_validate(cfg=JwtConfig.from_settings(settings), token=creds.credentials)
    except JwtValidationError as e:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}") from e

    subject = str(payload.get("sub", ""))
    if not subject:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Invalid token subject")
    email = payload.get("email")
    return Identity(subject=subject, email=str(email) if email else None)


def get_resolver(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> PrincipalResolver:
    return PrincipalResolver(session, timeout_seconds=settings.store_timeout_seconds)


async def get_principal(
    identity: Identity | None = Depends(get_identity),
    resolver: PrincipalResolver = Depends(get_resolver),
) -> EffectivePrincipal:
    principal = await resolver.resolve(identity)
    if not principal.is_authenticated:
        raise Unauthenticated()
    structlog.contextvars.bind_contextvars(member_id=str(principal.member_id))
    return principal


def require_access(
    required_level: RoleLevel,
    context_type: ContextType | None = None,
    context_param: str | None = None,
):
    """
    Dependency factory: deny unless the caller holds `required_level` and, when
    `context_param` names a path/query parameter, that id is within their scope.
    """

    def _dep(request: Request, principal: EffectivePrincipal = Depends(get_principal)):
        context_id: str | None = None
        if context_type is not None and context_param is not None:
            context_id = request.path_params.get(context_param) or request.query_params.get(
                context_param
            )
            if context_id is None:
                # A scoped route hit without its id never falls back to a level-only check.
                raise ContextDenied(f"missing {context_param}")

        decision = evaluate(principal, required_level, context_type, context_id)
        if decision.allowed:
            return principal
        if decision.reason in ("insufficient_role", "inactive"):
            raise InsufficientRole(decision.reason)
        raise ContextDenied(decision.reason)

    return _dep


# --- Module Notes -----------------------------------------------------------
# InsufficientRole and ContextDenied render identically (403 "Insufficient role");
# the reason string only reaches logs.
