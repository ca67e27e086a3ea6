"""
church_rbac.db.models

Persistence schema for access control.

Responsibilities:
- Define ORM models:
  - Member: the principal record (authoritative role level + context map)
  - AuthAccount: the auth provider's user record; `user_metadata` caches role claims
  - AuditEvent: append-only trail of role changes and registrations
"""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Enum, Index, Integer, String, Uuid as SAUuid
from sqlalchemy.orm import Mapped, mapped_column

from church_rbac.db.base import Base


def utcnow() -> datetime:
    # Naive UTC timestamps; SQLite has no tz-aware datetime type.
    return datetime.now(tz=UTC).replace(tzinfo=None)


class MemberStatus(enum.StrEnum):
    active = "active"
    inactive = "inactive"


class Member(Base):
    __tablename__ = "members"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
    first_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")

    role: Mapped[str] = mapped_column(String(32), nullable=False, default="member")
    role_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # {"cell_group_ids": [...]} etc.; NULL for Member/Admin.
    role_context: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    status: Mapped[MemberStatus] = mapped_column(
        Enum(MemberStatus, native_enum=False, length=16),
        nullable=False,
        default=MemberStatus.active,
    )
    # Optimistic concurrency token; bumped by every role write.
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class AuthAccount(Base):
    __tablename__ = "auth_accounts"

    # Same id as the member row it authenticates.
    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
    user_metadata: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    member_id: Mapped[uuid.UUID] = mapped_column(SAUuid(as_uuid=True), nullable=False, index=True)

    actor: Mapped[str] = mapped_column(String(256), nullable=False)  # member id / "bootstrap" / "system"
    event_type: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, index=True)

    __table_args__ = (Index("ix_audit_member_created", "member_id", "created_at"),)


# --- Module Notes -----------------------------------------------------------
# Member.role_level/role_context are the source of truth for authorization.
# AuthAccount.user_metadata is a cache that role writes refresh in the same transaction.
