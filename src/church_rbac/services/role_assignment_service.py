"""
church_rbac.services.role_assignment_service

Role assignment lifecycle service (transaction + persistence owner).

Responsibilities:
- Change a member's role level and context map on behalf of an Admin actor.
- Keep the cached session claims in step with the member record.
- Append an audit event for every role change.
- Bootstrap the first Admin from a shared secret.
- Link auth accounts to member rows in bulk (same secret).
- Admin read APIs: member listing and role history.
"""

from __future__ import annotations

import hmac
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from church_rbac.db.models import AuditEvent, Member
from church_rbac.db.repositories.audit import BOOTSTRAP_ACTOR, AuditEventType, AuditRepo
from church_rbac.db.repositories.auth_accounts import AuthAccountRepo
from church_rbac.db.repositories.members import MemberRepo
from church_rbac.observability.logging import get_logger
from church_rbac.rbac.context import ContextMap, build_context_map, clean_ids
from church_rbac.rbac.errors import (
    ConcurrentRoleUpdate,
    InsufficientRole,
    MemberRecordConflict,
    RoleValidationError,
    TargetNotFound,
    Unauthenticated,
)
from church_rbac.rbac.evaluator import evaluate
from church_rbac.rbac.resolver import PrincipalResolver, parse_member_id
from church_rbac.rbac.roles import (
    ContextType,
    RoleLevel,
    allowed_context_types,
    coerce_level,
    get_role_name,
    role_slug,
)
from church_rbac.rbac.store import store_call
from church_rbac.settings import Settings

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RoleAssignmentResult:
    member_id: uuid.UUID
    email: str
    role_level: int
    role: str
    role_name: str
    context_map: ContextMap | None


@dataclass(frozen=True, slots=True)
class AccountSyncResult:
    total: int
    created: list[str]
    relinked: list[str]
    conflicts: list[str]


@dataclass(frozen=True, slots=True)
class ValidatedAssignment:
    level: RoleLevel
    context_map: ContextMap | None


def validate_assignment(
    new_level: int,
    context_type: ContextType | str | None = None,
    context_ids: Sequence[Any] | None = None,
) -> ValidatedAssignment:
    level = coerce_level(new_level)
    if level is None:
        raise RoleValidationError("roleLevel must be one of 1, 2, 3, 4", field="roleLevel")

    allowed = allowed_context_types(level)
    if not allowed:
        # Member/Admin: whatever context was supplied is dropped.
        return ValidatedAssignment(level=level, context_map=None)

    parsed_type: ContextType | None = None
    if context_type is not None:
        try:
            parsed_type = ContextType(context_type)
        except ValueError:
            parsed_type = None
    if parsed_type is None or parsed_type not in allowed:
        expected = ", ".join(sorted(t.value for t in allowed))
        raise RoleValidationError(
            f"{get_role_name(level)} requires contextType in: {expected}", field="contextType"
        )

    if not clean_ids(context_ids):
        raise RoleValidationError(
            f"{get_role_name(level)} requires at least one context id", field="contextIds"
        )
    return ValidatedAssignment(level=level, context_map=build_context_map(parsed_type, context_ids))


class RoleAssignmentService:
    def __init__(self, *, session: AsyncSession, settings: Settings) -> None:
        self._session = session
        self._settings = settings
        self._timeout = settings.store_timeout_seconds

        self._resolver = PrincipalResolver(session, timeout_seconds=self._timeout)
        self._members = MemberRepo(session)
        self._accounts = AuthAccountRepo(session)
        self._audit = AuditRepo(session)

    @property
    def resolver(self) -> PrincipalResolver:
        return self._resolver

    async def assign_role(
        self,
        *,
        actor_id: uuid.UUID | str,
        target: str,
        new_level: int,
        context_type: ContextType | str | None = None,
        context_ids: Sequence[Any] | None = None,
    ) -> RoleAssignmentResult:
        await self._require_admin(actor_id)
        validated = validate_assignment(new_level, context_type, context_ids)
        member = await self._find_target(target)

        old_level = member.role_level
        old_context = member.role_context
        slug = role_slug(validated.level)

        try:
            async with store_call(op="member.set_role", timeout_seconds=self._timeout):
                written = await self._members.set_role(
                    member_id=member.id,
                    expected_version=member.version,
                    role=slug,
                    role_level=int(validated.level),
                    role_context=validated.context_map,
                )
                if not written:
                    raise ConcurrentRoleUpdate()
                await self._session.refresh(member)

                account = await self._accounts.get(member.id)
                if account is not None:
                    await self._accounts.write_role_claims(
                        account,
                        role=slug,
                        role_level=int(validated.level),
                        role_context=validated.context_map,
                    )

                await self._audit.record(
                    AuditEventType.ROLE_ASSIGNED,
                    member_id=member.id,
                    actor=actor_id,
                    details={
                        "old_role_level": old_level,
                        "new_role_level": int(validated.level),
                        "old_context": old_context,
                        "new_context": validated.context_map,
                        "claims_refreshed": account is not None,
                    },
                )
                await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

        log.info(
            "role_assigned",
            actor_id=str(actor_id),
            member_id=str(member.id),
            old_role_level=old_level,
            new_role_level=int(validated.level),
        )
        return RoleAssignmentResult(
            member_id=member.id,
            email=member.email,
            role_level=int(validated.level),
            role=slug,
            role_name=get_role_name(validated.level),
            context_map=validated.context_map,
        )

    async def bootstrap_admin(self, *, email: str, secret: str) -> RoleAssignmentResult:
        """
        Promote the account registered under `email` to Admin without an Admin actor.

        Used once, to create the first administrator. Requires the configured
        bootstrap secret; the feature is off when none is configured.
        """

        self._check_bootstrap_secret(secret, email=email)

        async with store_call(op="auth_account.get_by_email", timeout_seconds=self._timeout):
            account = await self._accounts.get_by_email(email)
        if account is None:
            raise TargetNotFound(f"No auth account found with email: {email}")
        member, _ = await self._resolver.ensure_member(
            account.id, email=account.email, metadata=account.user_metadata or {}
        )

        level = RoleLevel.ADMIN
        slug = role_slug(level)
        old_level = member.role_level
        try:
            async with store_call(op="member.bootstrap_admin", timeout_seconds=self._timeout):
                written = await self._members.set_role(
                    member_id=member.id,
                    expected_version=member.version,
                    role=slug,
                    role_level=int(level),
                    role_context=None,
                )
                if not written:
                    raise ConcurrentRoleUpdate()
                await self._session.refresh(member)

                await self._accounts.write_role_claims(
                    account, role=slug, role_level=int(level), role_context=None
                )
                await self._audit.record(
                    AuditEventType.ADMIN_BOOTSTRAPPED,
                    member_id=member.id,
                    actor=BOOTSTRAP_ACTOR,
                    details={"old_role_level": old_level, "new_role_level": int(level)},
                )
                await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

        log.info("admin_bootstrapped", member_id=str(member.id), email=member.email)
        return RoleAssignmentResult(
            member_id=member.id,
            email=member.email,
            role_level=int(level),
            role=slug,
            role_name=get_role_name(level),
            context_map=None,
        )

    async def sync_accounts(self, *, secret: str) -> AccountSyncResult:
        """
        Give every auth account without a member row one, in bulk.

        Imported members are re-keyed onto the account with their email; the rest
        get a new Member-level row. Conflicting emails are reported, not fixed.
        Gated by the bootstrap secret.
        """

        self._check_bootstrap_secret(secret, email=None)

        async with store_call(op="auth_account.list_unlinked", timeout_seconds=self._timeout):
            accounts = await self._accounts.list_unlinked()
        # Plain values: a rollback inside ensure_member expires the loaded rows.
        pending = [(a.id, a.email, dict(a.user_metadata or {})) for a in accounts]

        created: list[str] = []
        relinked: list[str] = []
        conflicts: list[str] = []
        for account_id, email, metadata in pending:
            try:
                _, action = await self._resolver.ensure_member(
                    account_id, email=email, metadata=metadata
                )
            except (MemberRecordConflict, ConcurrentRoleUpdate):
                conflicts.append(email)
                continue
            if action == "created":
                created.append(email)
            elif action == "relinked":
                relinked.append(email)

        log.info(
            "accounts_synced",
            total=len(pending),
            created=len(created),
            relinked=len(relinked),
            conflicts=len(conflicts),
        )
        return AccountSyncResult(
            total=len(pending), created=created, relinked=relinked, conflicts=conflicts
        )

    async def list_members(
        self,
        *,
        actor_id: uuid.UUID | str,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Member]:
        await self._require_admin(actor_id)
        async with store_call(op="member.search", timeout_seconds=self._timeout):
            return await self._members.search(query=search, limit=limit, offset=offset)

    async def role_history(
        self, *, actor_id: uuid.UUID | str, member_id: uuid.UUID, limit: int = 200
    ) -> list[AuditEvent]:
        await self._require_admin(actor_id)
        async with store_call(op="audit.list", timeout_seconds=self._timeout):
            member = await self._members.get(member_id)
            if member is None:
                raise TargetNotFound()
            return await self._audit.list_for_member(member_id, limit=limit)

    def _check_bootstrap_secret(self, secret: str, *, email: str | None) -> None:
        configured = self._settings.bootstrap_admin_secret
        if not configured:
            raise TargetNotFound("Not found")
        if not hmac.compare_digest(secret.encode(), configured.encode()):
            log.warning("admin_bootstrap_rejected", email=email)
            raise Unauthenticated("Unauthorized")

    async def _require_admin(self, actor_id: uuid.UUID | str) -> None:
        actor = await self._resolver.resolve_member(actor_id)
        decision = evaluate(actor, RoleLevel.ADMIN)
        if not decision.allowed:
            log.info("admin_action_denied", actor_id=str(actor_id), reason=decision.reason)
            raise InsufficientRole(f"Admin required ({decision.reason})")

    async def _find_target(self, target: str) -> Member:
        target = target.strip()
        async with store_call(op="member.find_target", timeout_seconds=self._timeout):
            if "@" in target:
                member = await self._members.get_by_email(target)
            else:
                member_id = parse_member_id(target)
                member = await self._members.get(member_id) if member_id is not None else None
        if member is None:
            raise TargetNotFound(f"No member found for: {target}")
        return member


# --- Module Notes -----------------------------------------------------------
# The member row, the claims cache and the audit event are written in one
# transaction; a failure anywhere rolls back all three.
