"""
church_rbac.db.repositories.members

Repository for `Member` entities.

Responsibilities:
- Fetch members by id or email.
- Insert self-registered members.
- Apply role changes as a single conditional (version-checked) update.
- Re-key an imported member onto the auth account that signs in with its email.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from church_rbac.db.models import Member, MemberStatus, utcnow

LIKE_ESCAPE = "\\"


def escape_like(value: str) -> str:
    # Admin search text is literal; `%` and `_` must not act as wildcards.
    for ch in (LIKE_ESCAPE, "%", "_"):
        value = value.replace(ch, LIKE_ESCAPE + ch)
    return value


class MemberRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, member_id: uuid.UUID) -> Member | None:
        return await self._session.get(Member, member_id)

    async def get_by_email(self, email: str) -> Member | None:
        stmt = select(Member).where(func.lower(Member.email) == email.strip().lower())
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def create(
        self,
        *,
        member_id: uuid.UUID,
        email: str,
        first_name: str = "",
        last_name: str = "",
        role: str = "member",
        role_level: int = 1,
        role_context: dict[str, Any] | None = None,
    ) -> Member:
        member = Member(
            id=member_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=role,
            role_level=role_level,
            role_context=role_context,
            status=MemberStatus.active,
            version=1,
        )
        self._session.add(member)
        await self._session.flush()
        return member

    async def set_role(
        self,
        *,
        member_id: uuid.UUID,
        expected_version: int,
        role: str,
        role_level: int,
        role_context: dict[str, Any] | None,
    ) -> bool:
        """
        Write role, level and context in one statement, guarded by the version read earlier.

        Returns False when another writer bumped the version first (nothing was written).
        """

        stmt = (
            update(Member)
            .where(Member.id == member_id, Member.version == expected_version)
            .values(
                role=role,
                role_level=role_level,
                role_context=role_context,
                version=expected_version + 1,
                updated_at=utcnow(),
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def rekey(self, member: Member, *, new_id: uuid.UUID) -> Member | None:
        """
        Move `member` to primary key `new_id`, guarded by its version.

        Returns the re-read row, or None when another writer got there first.
        """

        old_id = member.id
        stmt = (
            update(Member)
            .where(Member.id == old_id, Member.version == member.version)
            .values(id=new_id, version=member.version + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            return None
        # The identity map still holds the row under its old key.
        self._session.expunge(member)
        return await self._session.get(Member, new_id)

    async def search(self, *, query: str | None, limit: int, offset: int) -> list[Member]:
        stmt = select(Member).order_by(Member.last_name, Member.first_name, Member.email)
        if query:
            pattern = f"%{escape_like(query.strip().lower())}%"
            columns = (Member.first_name, Member.last_name, Member.email, Member.role, Member.status)
            stmt = stmt.where(
                or_(*(func.lower(c).like(pattern, escape=LIKE_ESCAPE) for c in columns))
            )
        stmt = stmt.limit(limit).offset(offset)
        return list((await self._session.execute(stmt)).scalars().all())
