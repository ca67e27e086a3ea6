"""
church_rbac.rbac.context

Context map helpers.

Responsibilities:
- Normalize stored scope values (bare scalar or list) into id sets.
- Build the canonical stored form of a context map.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from church_rbac.rbac.roles import ContextType

ContextMap = dict[str, Any]


def normalize_ids(raw: Any) -> frozenset[str]:
    """
    Turn a stored scope value into a set of string ids.

    Upstream rows hold either a single id or a list of ids. Elements are compared by
    exact string equality, so each is passed through `str()`; None and "" are dropped.
    """

    if raw is None:
        return frozenset()
    items = raw if isinstance(raw, (list, tuple, set, frozenset)) else [raw]
    return frozenset(str(i) for i in items if i is not None and str(i) != "")


def context_ids(
    context_map: Mapping[str, Any] | None, context_type: ContextType | str
) -> frozenset[str] | None:
    # None means "no entry for this dimension", which the evaluator treats as a deny.
    if not context_map:
        return None
    key = ContextType(context_type).value
    if key not in context_map or context_map[key] is None:
        return None
    return normalize_ids(context_map[key])


def clean_ids(ids: Iterable[Any] | None) -> list[str]:
    seen: dict[str, None] = {}
    for raw in ids or ():
        if raw is None:
            continue
        value = str(raw).strip()
        if value:
            seen.setdefault(value, None)
    return list(seen)


def build_context_map(
    context_type: ContextType | None, ids: Iterable[Any] | None
) -> ContextMap | None:
    if context_type is None:
        return None
    cleaned = clean_ids(ids)
    if not cleaned:
        return None
    return {ContextType(context_type).value: cleaned}
