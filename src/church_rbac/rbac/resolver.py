"""
church_rbac.rbac.resolver

Principal resolver.

Responsibilities:
- Map an authenticated `Identity` to its effective role level and context map.
- Register a Member-level record on first login when none exists, or re-key a
  member imported under another id that carries the same email.
- Re-sync the cached role claims on the auth account at login time.

The member record is the single source of truth. Role claims cached on the auth
account (and copied into tokens) are never consulted for authorization.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from church_rbac.auth.models import EffectivePrincipal, Identity
from church_rbac.db.models import Member, MemberStatus
from church_rbac.db.repositories.audit import SYSTEM_ACTOR, AuditEventType, AuditRepo
from church_rbac.db.repositories.auth_accounts import AuthAccountRepo, role_claims
from church_rbac.db.repositories.members import MemberRepo
from church_rbac.observability.logging import get_logger
from church_rbac.rbac.errors import ConcurrentRoleUpdate, MemberRecordConflict, Unauthenticated
from church_rbac.rbac.roles import RoleLevel, role_slug
from church_rbac.rbac.store import store_call

log = get_logger(__name__)


def parse_member_id(value: str | uuid.UUID) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def principal_from_member(member: Member) -> EffectivePrincipal:
    return EffectivePrincipal(
        member_id=member.id,
        email=member.email,
        role_level=int(member.role_level or 0),
        context_map=member.role_context,
        status=MemberStatus(member.status).value,
    )


def desired_claims(member: Member) -> dict[str, object]:
    return {
        "role": member.role,
        "role_level": member.role_level,
        "role_context": member.role_context,
    }


class PrincipalResolver:
    def __init__(self, session: AsyncSession, *, timeout_seconds: float = 5.0) -> None:
        self._session = session
        self._timeout = timeout_seconds
        self._members = MemberRepo(session)
        self._accounts = AuthAccountRepo(session)
        self._audit = AuditRepo(session)

    async def resolve(
        self, identity: Identity | None, *, refresh_claims: bool = False
    ) -> EffectivePrincipal:
        if identity is None:
            return EffectivePrincipal.anonymous()

        member_id = parse_member_id(identity.subject)
        if member_id is None:
            raise Unauthenticated("Invalid token subject")

        async with store_call(op="member.get", timeout_seconds=self._timeout):
            member = await self._members.get(member_id)
        if member is None:
            member = await self._register(member_id, identity)
        if refresh_claims:
            await self.sync_claims(member)
        return principal_from_member(member)

    async def resolve_member(self, member_id: uuid.UUID | str) -> EffectivePrincipal:
        # No self-healing here: used for actors of admin operations, which must already exist.
        parsed = parse_member_id(member_id)
        if parsed is None:
            raise Unauthenticated("Invalid member id")
        async with store_call(op="member.get", timeout_seconds=self._timeout):
            member = await self._members.get(parsed)
        if member is None:
            raise Unauthenticated("Unknown member")
        return principal_from_member(member)

    async def sync_claims(self, member: Member) -> bool:
        """Rewrite the cached role claims if they drifted from the member record."""

        async with store_call(op="auth_account.get", timeout_seconds=self._timeout):
            account = await self._accounts.get(member.id)
        if account is None or role_claims(account) == desired_claims(member):
            return False
        async with store_call(op="auth_account.write_claims", timeout_seconds=self._timeout):
            await self._accounts.write_role_claims(
                account,
                role=member.role,
                role_level=member.role_level,
                role_context=member.role_context,
            )
            await self._session.commit()
        log.info("session_claims_refreshed", member_id=str(member.id), role=member.role)
        return True

    async def _register(self, member_id: uuid.UUID, identity: Identity) -> Member:
        async with store_call(op="auth_account.get", timeout_seconds=self._timeout):
            account = await self._accounts.get(member_id)
        email = identity.email or (account.email if account is not None else None)
        if not email:
            raise Unauthenticated("No email available for first login")
        metadata = (account.user_metadata if account is not None else None) or {}
        try:
            member, _ = await self.ensure_member(member_id, email=email, metadata=metadata)
        except MemberRecordConflict:
            raise Unauthenticated("Member record conflict") from None
        return member

    async def ensure_member(
        self, member_id: uuid.UUID, *, email: str, metadata: dict[str, Any]
    ) -> tuple[Member, str]:
        """
        Give the auth account `member_id` a member row and commit it.

        A member imported under another id with the same email is re-keyed to
        `member_id` (keeping its role); otherwise a Member-level row is created.
        Returns the row and what happened: "existing", "relinked" or "created".
        Raises `MemberRecordConflict` when the email's row belongs to a different
        auth account.
        """

        try:
            async with store_call(op="member.register", timeout_seconds=self._timeout):
                existing = await self._members.get(member_id)
                if existing is not None:
                    return existing, "existing"
                by_email = await self._members.get_by_email(email)
                if by_email is not None:
                    member = await self._relink(by_email, member_id)
                    action = "relinked"
                else:
                    member = await self._members.create(
                        member_id=member_id,
                        email=email,
                        first_name=str(metadata.get("first_name") or ""),
                        last_name=str(metadata.get("last_name") or ""),
                        role=role_slug(RoleLevel.MEMBER),
                        role_level=int(RoleLevel.MEMBER),
                        role_context=None,
                    )
                    await self._audit.record(
                        AuditEventType.MEMBER_AUTO_REGISTERED,
                        member_id=member_id,
                        actor=SYSTEM_ACTOR,
                        details={"email": email},
                    )
                    action = "created"
                await self._session.commit()
        except IntegrityError:
            # A concurrent first login won the insert or the re-key.
            await self._session.rollback()
            async with store_call(op="member.get", timeout_seconds=self._timeout):
                existing = await self._members.get(member_id)
            if existing is None:
                log.error("member_register_conflict", member_id=str(member_id), email=email)
                raise MemberRecordConflict() from None
            return existing, "existing"
        except Exception:
            await self._session.rollback()
            raise

        log.info("member_linked", member_id=str(member_id), email=email, action=action)
        return member, action

    async def _relink(self, member: Member, new_id: uuid.UUID) -> Member:
        old_id = member.id
        if await self._accounts.get(old_id) is not None:
            log.error(
                "member_register_conflict", member_id=str(new_id), owner_id=str(old_id), email=member.email
            )
            raise MemberRecordConflict()
        relinked = await self._members.rekey(member, new_id=new_id)
        if relinked is None:
            raise ConcurrentRoleUpdate("Member record changed during sign-in")
        await self._audit.move_member(old_id, new_id)
        await self._audit.record(
            AuditEventType.MEMBER_RELINKED,
            member_id=new_id,
            actor=SYSTEM_ACTOR,
            details={"previous_member_id": str(old_id), "email": relinked.email},
        )
        return relinked


# --- Module Notes -----------------------------------------------------------
# A missing member row is healed (created or re-keyed), never reported; store outages surface as
# BackingStoreUnavailable via `store_call`.
