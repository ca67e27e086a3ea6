"""
tests.conftest

Shared fixtures: a throwaway SQLite database per test, member factories, and an
in-process HTTP client bound to the app factory.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import timedelta
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from church_rbac.api.app import create_app
from church_rbac.auth.jwt import JwtConfig, issue_token
from church_rbac.db.init_db import init_db
from church_rbac.db.models import AuthAccount, Member, MemberStatus
from church_rbac.db.session import create_engine, create_sessionmaker
from church_rbac.rbac.roles import RoleLevel, role_slug
from church_rbac.settings import Settings

BOOTSTRAP_SECRET = "let-me-in"

MemberFactory = Callable[..., Awaitable[Member]]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        env="test",
        log_level="WARNING",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'church.db'}",
        bootstrap_admin_secret=BOOTSTRAP_SECRET,
    )


@pytest_asyncio.fixture
async def sessionmaker(settings: Settings) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_engine(settings)
    await init_db(engine)
    try:
        yield create_sessionmaker(engine)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session(sessionmaker: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with sessionmaker() as s:
        yield s


@pytest.fixture
def make_member(sessionmaker: async_sessionmaker[AsyncSession]) -> MemberFactory:
    async def _make(
        email: str,
        *,
        level: RoleLevel = RoleLevel.MEMBER,
        context: dict[str, Any] | None = None,
        status: MemberStatus = MemberStatus.active,
        with_account: bool = True,
    ) -> Member:
        member_id = uuid.uuid4()
        async with sessionmaker() as s:
            if with_account:
                s.add(
                    AuthAccount(
                        id=member_id,
                        email=email,
                        user_metadata={
                            "role": role_slug(level),
                            "role_level": int(level),
                            "role_context": context,
                        },
                    )
                )
            member = Member(
                id=member_id,
                email=email,
                first_name=email.split("@")[0],
                last_name="Test",
                role=role_slug(level),
                role_level=int(level),
                role_context=context,
                status=status,
                version=1,
            )
            s.add(member)
            await s.commit()
        return member

    return _make


def bearer_for(settings: Settings, subject: uuid.UUID | str, email: str | None = None) -> dict[str, str]:
    token = issue_token(
        cfg=JwtConfig.from_settings(settings),
        subject=str(subject),
        email=email,
        ttl=timedelta(minutes=5),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(settings: Settings) -> AsyncIterator[httpx.AsyncClient]:
    app = create_app(settings=settings)
    # httpx ASGITransport does not run lifespan; drive it explicitly.
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            yield c

