"""
church_rbac.api.routers.dev_auth

Dev/test stand-in for the hosted auth provider.

Responsibilities:
- Create an auth account on first sign-in.
- Mint a session token carrying the account's cached role claims.
"""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_404_NOT_FOUND

from church_rbac.api.deps import db_session, settings_dep
from church_rbac.auth.jwt import JwtConfig, issue_token
from church_rbac.db.repositories.auth_accounts import AuthAccountRepo
from church_rbac.rbac.store import store_call
from church_rbac.settings import Settings

router = APIRouter(prefix="/api/dev", tags=["dev"])


class DevTokenRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    email: str = Field(min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    first_name: str = Field(default="", max_length=128)
    last_name: str = Field(default="", max_length=128)
    ttl_minutes: int = Field(default=60, ge=1, le=24 * 60)


class DevTokenResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    access_token: str
    token_type: str = "bearer"
    account_id: str


@router.post("/token", response_model=DevTokenResponse)
async def mint_dev_token(
    body: DevTokenRequest,
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> DevTokenResponse:
    if settings.env == "prod":
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Not found")

    accounts = AuthAccountRepo(session)
    async with store_call(op="dev.sign_in", timeout_seconds=settings.store_timeout_seconds):
        account = await accounts.get_by_email(body.email)
        if account is None:
            account = await accounts.create(
                email=body.email,
                user_metadata={"first_name": body.first_name, "last_name": body.last_name},
            )
            await session.commit()

    # The token snapshots whatever claims the account holds right now.
    token = issue_token(
        cfg=JwtConfig.from_settings(settings),
        subject=str(account.id),
        email=account.email,
        user_metadata=dict(account.user_metadata or {}),
        ttl=timedelta(minutes=body.ttl_minutes),
    )
    return DevTokenResponse(access_token=token, account_id=str(account.id))
