from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from church_rbac.db.models import AuthAccount, Member, utcnow

# Keys of `user_metadata` that mirror the member's role; other keys (names, etc.) are untouched.
ROLE_CLAIM_KEYS = ("role", "role_level", "role_context")


class AuthAccountRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, account_id: uuid.UUID) -> AuthAccount | None:
        return await self._session.get(AuthAccount, account_id)

    async def get_by_email(self, email: str) -> AuthAccount | None:
        stmt = select(AuthAccount).where(func.lower(AuthAccount.email) == email.strip().lower())
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_unlinked(self) -> list[AuthAccount]:
        """Accounts with no member row under their id, oldest first."""

        stmt = (
            select(AuthAccount)
            .outerjoin(Member, Member.id == AuthAccount.id)
            .where(Member.id.is_(None))
            .order_by(AuthAccount.created_at, AuthAccount.id)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def create(
        self, *, email: str, user_metadata: dict[str, Any] | None = None
    ) -> AuthAccount:
        account = AuthAccount(id=uuid.uuid4(), email=email, user_metadata=user_metadata or {})
        self._session.add(account)
        await self._session.flush()
        return account

    async def write_role_claims(
        self,
        account: AuthAccount,
        *,
        role: str,
        role_level: int,
        role_context: dict[str, Any] | None,
    ) -> None:
        # Reassign (not mutate) the JSON dict so the ORM sees the change.
        metadata = dict(account.user_metadata or {})
        metadata.update({"role": role, "role_level": role_level, "role_context": role_context})
        account.user_metadata = metadata
        account.updated_at = utcnow()
        await self._session.flush()


def role_claims(account: AuthAccount | None) -> dict[str, Any]:
    if account is None:
        return {}
    metadata = account.user_metadata or {}
    return {k: metadata[k] for k in ROLE_CLAIM_KEYS if k in metadata}
