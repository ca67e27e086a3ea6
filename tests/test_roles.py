from __future__ import annotations

import pytest

from church_rbac.rbac.context import build_context_map, context_ids, normalize_ids
from church_rbac.rbac.roles import (
    UNAUTHENTICATED_LEVEL,
    ContextType,
    RoleLevel,
    allowed_context_types,
    get_role_level,
    get_role_name,
    parse_role_level,
    role_slug,
)


def test_role_levels_are_totally_ordered() -> None:
    assert UNAUTHENTICATED_LEVEL < RoleLevel.MEMBER < RoleLevel.CELL_LEADER
    assert RoleLevel.CELL_LEADER < RoleLevel.MINISTRY_LEADER < RoleLevel.ADMIN
    assert sorted(RoleLevel, reverse=True)[0] is RoleLevel.ADMIN


@pytest.mark.parametrize(
    ("level", "name", "slug"),
    [
        (1, "Member", "member"),
        (2, "Cell Group Leader", "cell_leader"),
        (3, "Ministry Leader", "ministry_leader"),
        (4, "Admin", "admin"),
        (9, "Member", "member"),
        (0, "Member", "member"),
    ],
)
def test_role_names_and_slugs(level: int, name: str, slug: str) -> None:
    assert get_role_name(level) == name
    assert role_slug(level) == slug


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("member", RoleLevel.MEMBER),
        ("Cell Leader", RoleLevel.CELL_LEADER),
        ("cell_leader", RoleLevel.CELL_LEADER),
        ("CELLLEADER", RoleLevel.CELL_LEADER),
        ("cell group leader", RoleLevel.CELL_LEADER),
        ("  ministry leader ", RoleLevel.MINISTRY_LEADER),
        ("ministry_leader", RoleLevel.MINISTRY_LEADER),
        ("MinistryLeader", RoleLevel.MINISTRY_LEADER),
        ("Admin", RoleLevel.ADMIN),
        ("administrator", RoleLevel.ADMIN),
    ],
)
def test_parse_role_level_synonyms(text: str, expected: RoleLevel) -> None:
    assert parse_role_level(text) is expected
    assert get_role_level(text) is expected


@pytest.mark.parametrize("text", ["pastor", "", "cell-leader", None])
def test_unrecognized_role_names(text: str | None) -> None:
    # Strict parse reports the problem; the permissive one downgrades to Member.
    assert parse_role_level(text) is None
    assert get_role_level(text) is RoleLevel.MEMBER


def test_allowed_context_types_per_level() -> None:
    assert allowed_context_types(RoleLevel.CELL_LEADER) == {
        ContextType.CELL_GROUP,
        ContextType.DISTRICT,
    }
    assert allowed_context_types(RoleLevel.MINISTRY_LEADER) == {ContextType.MINISTRY}
    assert allowed_context_types(RoleLevel.MEMBER) == frozenset()
    assert allowed_context_types(RoleLevel.ADMIN) == frozenset()
    assert allowed_context_types(7) == frozenset()


def test_normalize_ids_accepts_scalar_and_list() -> None:
    assert normalize_ids("x") == normalize_ids(["x"]) == frozenset({"x"})
    assert normalize_ids([1, "2", None, ""]) == frozenset({"1", "2"})
    assert normalize_ids(None) == frozenset()


def test_context_ids_lookup() -> None:
    cmap = {"cell_group_ids": ["a", "b"], "ministry_ids": "m1"}
    assert context_ids(cmap, ContextType.CELL_GROUP) == {"a", "b"}
    assert context_ids(cmap, ContextType.MINISTRY) == {"m1"}
    assert context_ids(cmap, ContextType.DISTRICT) is None
    assert context_ids(None, ContextType.CELL_GROUP) is None


def test_build_context_map_dedupes_and_strips() -> None:
    assert build_context_map(ContextType.CELL_GROUP, [" g1", "g2", "g1", ""]) == {
        "cell_group_ids": ["g1", "g2"]
    }
    assert build_context_map(ContextType.MINISTRY, []) is None
    assert build_context_map(None, ["g1"]) is None
