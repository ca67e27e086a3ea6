"""
church_rbac.rbac.store

Guard for calls into the member store.

Responsibilities:
- Bound each store round-trip with a timeout.
- Translate connectivity failures into `BackingStoreUnavailable` so they are never
  mistaken for a deny or a missing row.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import InterfaceError, OperationalError

from church_rbac.observability.logging import get_logger
from church_rbac.rbac.errors import BackingStoreUnavailable

log = get_logger(__name__)


@asynccontextmanager
async def store_call(*, op: str, timeout_seconds: float) -> AsyncIterator[None]:
    try:
        async with asyncio.timeout(timeout_seconds):
            yield
    except TimeoutError as e:
        log.error("store_timeout", op=op, timeout_seconds=timeout_seconds)
        raise BackingStoreUnavailable(f"{op} timed out") from e
    except (OperationalError, InterfaceError) as e:
        log.error("store_unavailable", op=op, error=str(e.orig))
        raise BackingStoreUnavailable(f"{op} failed") from e
