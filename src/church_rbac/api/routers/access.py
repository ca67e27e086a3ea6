from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from church_rbac.auth.deps import get_identity, get_resolver
from church_rbac.auth.models import Identity
from church_rbac.rbac.errors import Unauthenticated
from church_rbac.rbac.evaluator import AccessEvaluator
from church_rbac.rbac.resolver import PrincipalResolver
from church_rbac.rbac.roles import ContextType

router = APIRouter(prefix="/api/access", tags=["access"])


@router.get("/check")
async def check_access(
    required_level: int = Query(alias="requiredLevel", ge=1, le=4),
    context_type: ContextType | None = Query(default=None, alias="contextType"),
    context_id: str | None = Query(default=None, alias="contextId", max_length=128),
    identity: Identity | None = Depends(get_identity),
    resolver: PrincipalResolver = Depends(get_resolver),
) -> dict[str, bool]:
    # "Must log in" is a 401, not a deny.
    if identity is None:
        raise Unauthenticated()
    # Only the boolean leaves the service; the decision reason stays in the logs.
    allowed = await AccessEvaluator(resolver).check_access(
        identity, required_level, context_type, context_id
    )
    return {"allowed": allowed}
