"""
church_rbac.auth.models

Auth domain models.

Responsibilities:
- `Identity`: who the bearer token says the caller is.
- `EffectivePrincipal`: the caller's resolved role level and context map.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from church_rbac.rbac.roles import UNAUTHENTICATED_LEVEL, RoleLevel


@dataclass(frozen=True, slots=True)
class Identity:
    """
    Authenticated caller identity as asserted by the session token.

    Role claims carried by the token are deliberately not part of this type.
    """

    subject: str
    email: str | None = None


@dataclass(frozen=True, slots=True)
class EffectivePrincipal:
    member_id: uuid.UUID | None
    email: str | None
    role_level: int
    context_map: dict[str, Any] | None = field(default=None)
    status: str = "active"

    @classmethod
    def anonymous(cls) -> EffectivePrincipal:
        return cls(member_id=None, email=None, role_level=UNAUTHENTICATED_LEVEL)

    @property
    def is_authenticated(self) -> bool:
        return self.role_level > UNAUTHENTICATED_LEVEL

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def is_admin(self) -> bool:
        return self.role_level >= RoleLevel.ADMIN


# --- Module Notes -----------------------------------------------------------
# Keep these models minimal; they cross the API, service and evaluator boundaries.
