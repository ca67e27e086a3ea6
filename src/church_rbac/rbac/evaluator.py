"""
church_rbac.rbac.evaluator

Access evaluator.

Responsibilities:
- Decide allow/deny for a required role level and an optional (context type, id) scope.
- Keep the decision reason for logs only; callers see a boolean.

Decision order:
1. inactive or too-low level -> deny
2. Admin -> allow, context ignored
3. no scope requested -> allow
4. no context map / no entry for the type -> deny
5. allow iff the id is in the (normalized) entry
"""

from __future__ import annotations

from dataclasses import dataclass

from church_rbac.auth.models import EffectivePrincipal, Identity
from church_rbac.observability.logging import get_logger
from church_rbac.rbac.context import context_ids
from church_rbac.rbac.resolver import PrincipalResolver
from church_rbac.rbac.roles import ContextType, RoleLevel

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class AccessDecision:
    allowed: bool
    reason: str

    def __bool__(self) -> bool:
        return self.allowed


def evaluate(
    principal: EffectivePrincipal,
    required_level: int,
    context_type: ContextType | None = None,
    context_id: str | None = None,
) -> AccessDecision:
    if not principal.is_authenticated:
        return AccessDecision(False, "unauthenticated")
    if not principal.is_active:
        return AccessDecision(False, "inactive")
    if principal.role_level < int(required_level):
        return AccessDecision(False, "insufficient_role")
    if principal.role_level >= RoleLevel.ADMIN:
        return AccessDecision(True, "admin_bypass")
    if context_type is None or context_id is None:
        return AccessDecision(True, "level_only")
    if not principal.context_map:
        return AccessDecision(False, "no_context")

    ids = context_ids(principal.context_map, context_type)
    if ids is None:
        return AccessDecision(False, "context_type_missing")
    if str(context_id) in ids:
        return AccessDecision(True, "context_match")
    return AccessDecision(False, "context_denied")


class AccessEvaluator:
    def __init__(self, resolver: PrincipalResolver) -> None:
        self._resolver = resolver

    async def decide(
        self,
        identity: Identity | None,
        required_level: int,
        context_type: ContextType | None = None,
        context_id: str | None = None,
    ) -> AccessDecision:
        # Store failures propagate from the resolver; only a real deny returns False.
        principal = await self._resolver.resolve(identity)
        decision = evaluate(principal, required_level, context_type, context_id)
        log.debug(
            "access_decision",
            member_id=str(principal.member_id) if principal.member_id else None,
            required_level=int(required_level),
            context_type=context_type.value if context_type else None,
            allowed=decision.allowed,
            reason=decision.reason,
        )
        return decision

    async def check_access(
        self,
        identity: Identity | None,
        required_level: int,
        context_type: ContextType | None = None,
        context_id: str | None = None,
    ) -> bool:
        return (await self.decide(identity, required_level, context_type, context_id)).allowed
