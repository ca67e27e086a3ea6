"""
church_rbac.rbac.roles

Role levels and context types.

Responsibilities:
- Define the ordered `RoleLevel` tiers and the `ContextType` scope keys.
- Convert between levels, display names and persisted role slugs.
- Parse free-form role names (strict and permissive variants).
"""

from __future__ import annotations

import enum

from church_rbac.observability.logging import get_logger

log = get_logger(__name__)

# Effective level of a caller with no resolvable principal.
UNAUTHENTICATED_LEVEL = 0


class RoleLevel(enum.IntEnum):
    MEMBER = 1
    CELL_LEADER = 2
    MINISTRY_LEADER = 3
    ADMIN = 4


class ContextType(enum.StrEnum):
    # Values are the keys stored in `members.role_context`; treat as a stable contract.
    CELL_GROUP = "cell_group_ids"
    MINISTRY = "ministry_ids"
    DISTRICT = "district_ids"


_ROLE_NAMES: dict[RoleLevel, str] = {
    RoleLevel.MEMBER: "Member",
    RoleLevel.CELL_LEADER: "Cell Group Leader",
    RoleLevel.MINISTRY_LEADER: "Ministry Leader",
    RoleLevel.ADMIN: "Admin",
}

_ROLE_SLUGS: dict[RoleLevel, str] = {
    RoleLevel.MEMBER: "member",
    RoleLevel.CELL_LEADER: "cell_leader",
    RoleLevel.MINISTRY_LEADER: "ministry_leader",
    RoleLevel.ADMIN: "admin",
}

_ROLE_SYNONYMS: dict[str, RoleLevel] = {
    "member": RoleLevel.MEMBER,
    "cell_leader": RoleLevel.CELL_LEADER,
    "cell leader": RoleLevel.CELL_LEADER,
    "cellleader": RoleLevel.CELL_LEADER,
    "cell group leader": RoleLevel.CELL_LEADER,
    "ministry_leader": RoleLevel.MINISTRY_LEADER,
    "ministry leader": RoleLevel.MINISTRY_LEADER,
    "ministryleader": RoleLevel.MINISTRY_LEADER,
    "admin": RoleLevel.ADMIN,
    "administrator": RoleLevel.ADMIN,
}

_SCOPES: dict[RoleLevel, frozenset[ContextType]] = {
    RoleLevel.CELL_LEADER: frozenset({ContextType.CELL_GROUP, ContextType.DISTRICT}),
    RoleLevel.MINISTRY_LEADER: frozenset({ContextType.MINISTRY}),
}


def coerce_level(level: int) -> RoleLevel | None:
    try:
        return RoleLevel(int(level))
    except ValueError:
        return None


def get_role_name(level: int) -> str:
    """Display label for a level; anything outside 1-4 reads as "Member"."""

    return _ROLE_NAMES.get(coerce_level(level) or RoleLevel.MEMBER, "Member")


def role_slug(level: int) -> str:
    return _ROLE_SLUGS.get(coerce_level(level) or RoleLevel.MEMBER, "member")


def parse_role_level(text: str | None) -> RoleLevel | None:
    """
    Strict parse of a role name or synonym.

    Case-insensitive and whitespace-trimmed. Returns None for anything unrecognized so
    callers can reject bad input instead of silently downgrading it.
    """

    if text is None:
        return None
    return _ROLE_SYNONYMS.get(text.strip().lower())


def get_role_level(text: str | None) -> RoleLevel:
    """
    Permissive parse: unrecognized names fall back to `RoleLevel.MEMBER`.

    The fallback is logged so migrated or hand-edited role names show up in the logs.
    """

    level = parse_role_level(text)
    if level is None:
        log.warning("role_name_unrecognized", role_name=text, fallback=RoleLevel.MEMBER.name)
        return RoleLevel.MEMBER
    return level


def allowed_context_types(level: int) -> frozenset[ContextType]:
    # Empty for Member/Admin: context is meaningless at those levels.
    lvl = coerce_level(level)
    if lvl is None:
        return frozenset()
    return _SCOPES.get(lvl, frozenset())


def is_scoped(level: int) -> bool:
    return bool(allowed_context_types(level))


# --- Module Notes -----------------------------------------------------------
# Role slugs (`member`, `cell_leader`, ...) are what the `members.role` column holds;
# display names are only used in API responses.
